"""
Tests for the case_reports module.

Tests cover:
- Submission model (uniqueness, defaults, SET_NULL on user delete)
- CaseReportService (visibility, duplicates, updates, statistics, comments)
- CSV export flattening, column layout and filters
- CSV import header aliasing and form reconstruction
- export_case_reports / import_case_reports management commands
"""

import csv
import io
import os
import tempfile
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import IntegrityError
from django.test import TestCase

from apps.authentication.models import User, UserRole, Hospital
from apps.delete_requests.models import DeleteRequest, DeleteRequestStatus

from .csv_export import (
    BOM, EXPORT_LABELS, build_export, flatten_submission, select_rows, export_filename,
)
from .csv_import import (
    build_form_data, import_csv, import_template, parse_rows, parse_usage_range,
    resolve_header, TEMPLATE_FIELDS,
)
from .exceptions import DuplicateSubmission, ImportFormatError, NothingToExport
from .form_schema import ANTIBIOTIC_DRUGS, PATHOGENS, drug_class, malformed_fields
from .models import Submission, DataStatus
from .services import CaseReportService


def _form(**overrides):
    data = {
        'record_time': '2026-01-20 10:00',
        'medical_record_number': 'A001',
        'admission_date': '2026-01-10',
        'name': '王小明',
        'hospital': Hospital.NEIHU,
        'pathogen': 'CRKP',
        'positive_culture_date': '2026-01-12',
        'primary_source': ['Lung', 'Urine'],
        'type_of_infection': 'Hospital acquired',
        'chronic_diseases': ['Diabetes Mellitus', 'OLD CVA'],
        'thrombocytopenia': 'Yes',
        'septic_shock': 'No',
        'mic_data': {'meropenem': '≥8', 'trimeth_sulfame': '2/38'},
        'antibiotic_classes': ['carbapenem', 'carbapenem', 'polymyxin'],
        'antibiotic_details': {
            'carbapenem': {
                'drugs': ['Meropenem'],
                'usage': {
                    'Meropenem': {
                        'start_date': '2026-01-12', 'end_date': '2026-01-19',
                        'second_use': True,
                        'second_start_date': '2026-01-25', 'second_end_date': '2026-01-30',
                    },
                },
            },
            'polymyxin': {
                'drugs': ['Colistin'],
                'usage': {'Colistin': {'start_date': '2026-01-13', 'end_date': '', 'second_use': False}},
            },
        },
        'crude_mortality': 'Alive',
    }
    data.update(overrides)
    return data


class CaseReportTestBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            username='nurse', password='testpass123', hospital=Hospital.NEIHU,
        )
        cls.other = User.objects.create_user(
            username='other', password='testpass123', hospital=Hospital.TAOYUAN,
        )
        cls.admin = User.objects.create_user(
            username='boss', password='testpass123', hospital=Hospital.NEIHU,
            role=UserRole.ADMIN,
        )

    def setUp(self):
        self.service = CaseReportService()

    def _create(self, user=None, mrn='A001', admission='2026-01-10', **form_overrides):
        user = user or self.user
        return self.service.create(
            user, mrn, admission,
            _form(medical_record_number=mrn, admission_date=admission,
                  hospital=user.hospital, **form_overrides),
        )


# ============================================================================
# Model Tests
# ============================================================================

class SubmissionModelTests(CaseReportTestBase):

    def test_defaults(self):
        s = Submission.objects.create(
            user=self.user, medical_record_number='X1', admission_date='2026-02-01',
        )
        self.assertEqual(s.update_count, 1)
        self.assertEqual(s.data_status, DataStatus.INCOMPLETE)
        self.assertEqual(s.form_data, {})

    def test_unique_mrn_admission_date(self):
        Submission.objects.create(user=self.user, medical_record_number='X1', admission_date='2026-02-01')
        with self.assertRaises(IntegrityError):
            Submission.objects.create(user=self.other, medical_record_number='X1', admission_date='2026-02-01')

    def test_user_delete_keeps_submission(self):
        temp = User.objects.create_user(username='temp', password='testpass123', hospital=Hospital.PENGHU)
        s = Submission.objects.create(user=temp, medical_record_number='X2', admission_date='2026-02-01')
        temp.delete()
        s.refresh_from_db()
        self.assertIsNone(s.user)

    def test_hospital_and_pathogen_come_from_form(self):
        s = self._create()
        self.assertEqual(s.hospital, Hospital.NEIHU)
        self.assertEqual(s.pathogen, 'CRKP')

    def test_str(self):
        s = self._create()
        self.assertIn('A001', str(s))
        self.assertIn('未完成', str(s))


# ============================================================================
# Service Tests
# ============================================================================

class CaseReportServiceTests(CaseReportTestBase):

    def test_create_rejects_duplicate_with_existing_id(self):
        first = self._create()
        with self.assertRaises(DuplicateSubmission) as ctx:
            self._create(user=self.other)
        self.assertEqual(ctx.exception.existing_id, first.pk)
        self.assertEqual(ctx.exception.message, '此病歷號與住院日期已存在記錄')

    def test_same_mrn_different_admission_is_allowed(self):
        self._create()
        self._create(admission='2026-03-01')
        self.assertEqual(Submission.objects.count(), 2)

    def test_visible_to_user_is_own_only(self):
        self._create()
        self._create(user=self.other, mrn='B001')
        self.assertEqual(
            list(self.service.visible_to(self.user).values_list('medical_record_number', flat=True)),
            ['A001'],
        )
        self.assertEqual(self.service.visible_to(self.admin).count(), 2)

    def test_has_pending_delete_annotation(self):
        s = self._create()
        DeleteRequest.objects.create(
            submission=s, requester=self.user,
            medical_record_number=s.medical_record_number, admission_date=s.admission_date,
        )
        row = self.service.visible_to(self.user).get(pk=s.pk)
        self.assertTrue(row.has_pending_delete)

    def test_find_existing_scopes_non_admins(self):
        self._create(user=self.other, mrn='B001')
        self.assertIsNone(self.service.find_existing(self.user, 'B001', '2026-01-10'))
        self.assertIsNotNone(self.service.find_existing(self.admin, 'B001', '2026-01-10'))

    def test_update_increments_count(self):
        s = self._create()
        self.service.update(s, {'pathogen': 'CRAB'}, DataStatus.COMPLETE)
        s.refresh_from_db()
        self.assertEqual(s.update_count, 2)
        self.assertEqual(s.form_data, {'pathogen': 'CRAB'})
        self.assertEqual(s.data_status, DataStatus.COMPLETE)

    def test_update_without_status_falls_back_to_incomplete(self):
        s = self._create()
        self.service.update(s, {'pathogen': 'CRAB'})
        self.assertEqual(s.data_status, DataStatus.INCOMPLETE)

    def test_delete_closes_pending_requests(self):
        s = self._create()
        req = DeleteRequest.objects.create(
            submission=s, requester=self.user,
            medical_record_number=s.medical_record_number, admission_date=s.admission_date,
        )
        self.service.delete(s, deleted_by=self.admin)

        req.refresh_from_db()
        self.assertFalse(Submission.objects.filter(pk=s.pk).exists())
        self.assertEqual(req.status, DeleteRequestStatus.APPROVED)
        self.assertEqual(req.resolved_by, self.admin)
        self.assertIsNotNone(req.resolved_at)
        self.assertIsNone(req.submission_id)

    def test_delete_leaves_resolved_requests_alone(self):
        s = self._create()
        req = DeleteRequest.objects.create(
            submission=s, requester=self.user, status=DeleteRequestStatus.REJECTED,
            medical_record_number=s.medical_record_number, admission_date=s.admission_date,
        )
        self.service.delete(s, deleted_by=self.admin)
        req.refresh_from_db()
        self.assertEqual(req.status, DeleteRequestStatus.REJECTED)
        self.assertIsNone(req.resolved_by)

    def test_comments(self):
        s = self._create()
        comment = self.service.add_comment(s, self.user, '請補上 MIC')
        self.assertEqual(s.comments.count(), 1)
        self.assertTrue(self.service.can_delete_comment(comment, self.user))
        self.assertTrue(self.service.can_delete_comment(comment, self.admin))
        self.assertFalse(self.service.can_delete_comment(comment, self.other))


class StatisticsTests(CaseReportTestBase):

    def setUp(self):
        super().setUp()
        self._create(mrn='A1', pathogen='CRKP')
        self._create(mrn='A2', pathogen='CRAB')
        s = self._create(mrn='A3', pathogen='CRKP')
        s.data_status = DataStatus.COMPLETE
        s.save()
        self._create(user=self.other, mrn='B1', pathogen='CRPA')

    def test_hospital_stats_cover_all_hospitals(self):
        stats = self.service.statistics(self.user)
        self.assertEqual(stats['hospital_stats'][0], {'name': '內湖總院', 'count': 3, 'percentage': 75.0})
        self.assertEqual(stats['hospital_stats'][1], {'name': '桃園總院', 'count': 1, 'percentage': 25.0})
        self.assertEqual(stats['available_hospitals'], ['內湖總院', '桃園總院'])

    def test_pathogens_in_fixed_order(self):
        stats = self.service.statistics(self.user)
        self.assertEqual([p['name'] for p in stats['pathogen_stats']], PATHOGENS)

    def test_user_pathogen_scope_defaults_to_own_hospital(self):
        stats = self.service.statistics(self.user)
        by_name = {p['name']: p for p in stats['pathogen_stats']}
        self.assertEqual(by_name['CRKP']['count'], 2)
        self.assertEqual(by_name['CRKP']['percentage'], 66.7)
        self.assertEqual(by_name['CRPA']['count'], 0)
        self.assertEqual(stats['total_records'], 3)

    def test_user_pathogen_scope_all(self):
        stats = self.service.statistics(self.user, pathogen_scope='all')
        by_name = {p['name']: p for p in stats['pathogen_stats']}
        self.assertEqual(by_name['CRPA']['count'], 1)
        self.assertEqual(by_name['CRKP']['percentage'], 50.0)

    def test_user_completion_is_own_hospital(self):
        stats = self.service.statistics(self.other)
        self.assertEqual(stats['completion_stats'][0]['name'], '已完成')
        self.assertEqual(stats['completion_stats'][0]['count'], 0)
        self.assertEqual(stats['completion_stats'][1]['count'], 1)

    def test_admin_hospital_filters(self):
        stats = self.service.statistics(
            self.admin, pathogen_hospital='桃園總院', completion_hospital='內湖總院',
        )
        by_name = {p['name']: p for p in stats['pathogen_stats']}
        self.assertEqual(by_name['CRPA']['percentage'], 100.0)
        self.assertEqual(stats['completion_stats'][0]['count'], 1)
        self.assertEqual(stats['completion_stats'][1]['count'], 2)
        self.assertEqual(stats['total_records'], 4)

    def test_non_text_hospital_and_pathogen_ignored(self):
        Submission.objects.create(
            user=self.user, medical_record_number='A9', admission_date='2026-02-01',
            form_data={'hospital': ['內湖總院'], 'pathogen': ['CRKP', 'CRAB']},
        )
        stats = self.service.statistics(self.admin)
        self.assertEqual(stats['total_records'], 5)
        self.assertIn('未知', stats['available_hospitals'])
        by_name = {p['name']: p for p in stats['pathogen_stats']}
        self.assertEqual(by_name['CRKP']['count'], 2)
        self.assertEqual(by_name['CRAB']['count'], 1)

    def test_empty_database(self):
        Submission.objects.all().delete()
        stats = self.service.statistics(self.user)
        self.assertEqual(stats['hospital_stats'], [])
        self.assertEqual(stats['completion_stats'], [])
        self.assertTrue(all(p['count'] == 0 and p['percentage'] == 0 for p in stats['pathogen_stats']))


# ============================================================================
# CSV Export Tests
# ============================================================================

class FlattenSubmissionTests(CaseReportTestBase):

    def setUp(self):
        super().setUp()
        self.submission = self._create()
        self.flat = flatten_submission(self.submission)

    def test_metadata(self):
        self.assertEqual(self.flat['medical_record_number'], 'A001')
        self.assertEqual(self.flat['username'], 'nurse')
        self.assertEqual(self.flat['user_hospital'], '內湖總院')
        self.assertEqual(self.flat['id'], self.submission.pk)
        self.assertEqual(self.flat['primary_source'], '')
        self.assertEqual(self.flat['chronic_diseases'], '')

    def test_one_hot_columns(self):
        self.assertEqual(self.flat['ps_Lung'], 1)
        self.assertEqual(self.flat['ps_Urine'], 1)
        self.assertEqual(self.flat['ps_Blood'], 0)
        self.assertEqual(self.flat['cd_OLD_CVA'], 1)
        self.assertEqual(self.flat['cd_Diabetes_Mellitus'], 1)
        self.assertEqual(self.flat['cd_None'], 0)

    def test_boolean_fields(self):
        self.assertEqual(self.flat['thrombocytopenia'], 1)
        self.assertEqual(self.flat['septic_shock'], 0)

    def test_unknown_boolean_value_passes_through(self):
        s = self._create(mrn='A002', icu_at_onset='Unknown')
        self.assertEqual(flatten_submission(s)['icu_at_onset'], 'Unknown')

    def test_mic_columns_and_fraction_guard(self):
        self.assertEqual(self.flat['mic_meropenem'], '≥8')
        self.assertEqual(self.flat['mic_trimeth_sulfame'], '\t2/38')

    def test_antibiotic_columns(self):
        self.assertEqual(
            self.flat['ab_Meropenem'], '2026-01-12 ~ 2026-01-19; 2026-01-25 ~ 2026-01-30',
        )
        self.assertEqual(self.flat['ab_Colistin'], '2026-01-13 ~ ')
        self.assertEqual(self.flat['ab_Piperacillin_Tazobactam'], 0)
        self.assertEqual(len([k for k in self.flat if k.startswith('ab_')]), len(ANTIBIOTIC_DRUGS))

    def test_antibiotic_summary(self):
        self.assertEqual(
            self.flat['antibiotic_details'],
            'Meropenem (2026-01-12 ~ 2026-01-19); 2026-01-25 ~ 2026-01-30 | Colistin (2026-01-13 ~ ?)',
        )

    def test_antibiotic_classes_deduplicated(self):
        self.assertEqual(self.flat['antibiotic_classes'], 'carbapenem, polymyxin')

    def test_other_dicts_json_encoded(self):
        s = self._create(mrn='A003', extra={'k': '值'})
        self.assertEqual(flatten_submission(s)['extra'], '{"k": "值"}')

    def test_misshapen_nested_values_skipped(self):
        s = Submission.objects.create(
            user=self.user, medical_record_number='A010', admission_date='2026-01-10',
            form_data={
                'antibiotic_details': {
                    'carbapenem': ['Meropenem'],
                    'polymyxin': {'usage': ['Colistin']},
                    'aminoglycoside': {'usage': {'Amikacin': '2026-01-01'}},
                },
                'mic_data': {'meropenem': ['8'], 'imipenem': '4'},
            },
        )
        flat = flatten_submission(s)
        self.assertEqual(flat['antibiotic_details'], 'Amikacin (? ~ ?)')
        self.assertEqual(flat['ab_Amikacin'], ' ~ ')
        self.assertEqual(flat['ab_Meropenem'], 0)
        self.assertEqual(flat['mic_imipenem'], '4')
        self.assertNotIn('mic_meropenem', flat)
        build_export([flat])


class FormShapeTests(TestCase):

    def test_well_formed_document(self):
        self.assertEqual(malformed_fields(_form()), [])

    def test_missing_and_null_values_allowed(self):
        self.assertEqual(malformed_fields({}), [])
        self.assertEqual(
            malformed_fields({
                'pathogen': None,
                'primary_source': None,
                'antibiotic_details': {'carbapenem': {'drugs': [], 'usage': {'Meropenem': None}}},
            }),
            [],
        )

    def test_single_value_fields(self):
        self.assertEqual(
            malformed_fields({'pathogen': ['CRKP', 'CRAB'], 'hospital': {'name': '內湖總院'}}),
            ['hospital', 'pathogen'],
        )

    def test_multi_select_fields(self):
        self.assertEqual(
            malformed_fields({'primary_source': 'Lung', 'chronic_diseases': [['COPD']]}),
            ['primary_source', 'chronic_diseases'],
        )

    def test_mic_data(self):
        self.assertEqual(malformed_fields({'mic_data': ['≥8']}), ['mic_data'])
        self.assertEqual(malformed_fields({'mic_data': {'meropenem': ['8']}}), ['mic_data'])

    def test_antibiotic_details(self):
        for details in (
            ['carbapenem'],
            {'carbapenem': ['Meropenem']},
            {'carbapenem': {'drugs': 'Meropenem'}},
            {'carbapenem': {'usage': ['Meropenem']}},
            {'carbapenem': {'usage': {'Meropenem': '2026-01-01'}}},
        ):
            with self.subTest(details=details):
                self.assertEqual(
                    malformed_fields({'antibiotic_details': details}), ['antibiotic_details'],
                )


class BuildExportTests(CaseReportTestBase):

    def _parse(self, text):
        self.assertTrue(text.startswith(BOM))
        return list(csv.reader(io.StringIO(text[len(BOM):])))

    def test_header_follows_label_table(self):
        rows = [flatten_submission(self._create())]
        header = self._parse(build_export(rows))[0]
        self.assertEqual(header[0], '病歷號')
        self.assertEqual(header[1], 'Admission Date')
        self.assertLess(header.index('Lung (Yes=1, No=0)'), header.index('Type of Infection'))
        self.assertIn('MIC_TRIMETH/SULFAME', header)
        self.assertIn('Record ID', header)

    def test_unknown_keys_appended_with_raw_name(self):
        rows = [flatten_submission(self._create())]
        header = self._parse(build_export(rows))[0]
        self.assertIn('ab_Meropenem', header)
        self.assertIn('record_time', header)
        self.assertGreater(header.index('ab_Meropenem'), header.index('Record ID'))

    def test_only_present_label_columns(self):
        s = Submission.objects.create(user=self.user, medical_record_number='Z', admission_date='2026-01-01')
        header = self._parse(build_export([flatten_submission(s)]))[0]
        self.assertNotIn('Name', header)
        self.assertNotIn(EXPORT_LABELS['mic_meropenem'], header)

    def test_filename(self):
        import datetime
        self.assertEqual(export_filename(datetime.date(2026, 3, 4)), 'mhar-bsi-export-2026-03-04.csv')


class SelectRowsTests(CaseReportTestBase):

    def setUp(self):
        super().setUp()
        self.a = self._create(mrn='AB-100', admission='2026-01-10', pathogen='CRKP',
                              positive_culture_date='2026-01-12')
        self.b = self._create(mrn='CD-200', admission='2026-02-10', pathogen='CRAB',
                              positive_culture_date='2026-02-15')
        self.c = self._create(user=self.other, mrn='EF-300', admission='2026-03-10',
                              pathogen='CRPA', positive_culture_date='2026-03-11')
        self.all = Submission.objects.select_related('user')

    def _mrns(self, filters):
        return sorted(r['medical_record_number'] for r in select_rows(self.all, filters))

    def test_no_filters(self):
        self.assertEqual(len(select_rows(self.all)), 3)

    def test_ids_override_other_filters(self):
        self.assertEqual(self._mrns({'ids': f'{self.a.pk},{self.c.pk}', 'pathogens': 'CRAB'}),
                         ['AB-100', 'EF-300'])

    def test_admission_range(self):
        self.assertEqual(self._mrns({'admission_start': '2026-02-01', 'admission_end': '2026-02-28'}),
                         ['CD-200'])

    def test_culture_range(self):
        self.assertEqual(self._mrns({'culture_start': '2026-02-01'}), ['CD-200', 'EF-300'])

    def test_hospital_is_submitting_users_hospital(self):
        self.assertEqual(self._mrns({'hospital': '桃園總院'}), ['EF-300'])

    def test_pathogens_list(self):
        self.assertEqual(self._mrns({'pathogens': 'CRKP,CRPA'}), ['AB-100', 'EF-300'])

    def test_mrn_substring_case_insensitive(self):
        self.assertEqual(self._mrns({'mrn': 'cd-2'}), ['CD-200'])

    def test_empty_queryset(self):
        with self.assertRaises(NothingToExport) as ctx:
            select_rows(Submission.objects.none())
        self.assertEqual(ctx.exception.message, '沒有資料可匯出')

    def test_no_match(self):
        with self.assertRaises(NothingToExport) as ctx:
            select_rows(self.all, {'mrn': 'zzz'})
        self.assertEqual(ctx.exception.message, '無符合篩選條件的資料可匯出')


# ============================================================================
# CSV Import Tests
# ============================================================================

class HeaderResolutionTests(TestCase):

    def test_raw_keys(self):
        self.assertEqual(resolve_header('pathogen'), 'pathogen')

    def test_template_labels(self):
        self.assertEqual(resolve_header('住院日期(YYYY-MM-DD)'), 'admission_date')
        self.assertEqual(resolve_header('感染來源(多選用|分隔)'), 'primary_source')

    def test_export_labels_whitespace_and_case_insensitive(self):
        self.assertEqual(resolve_header(' admission  date '), 'admission_date')
        self.assertEqual(resolve_header('SOFA Score'), 'sofa_score')
        self.assertEqual(resolve_header('MIC_CAZ/Avibactam'), 'mic_caz_avibactam')

    def test_one_hot_labels_and_keys(self):
        self.assertEqual(resolve_header('OLD CVA (Yes=1, No=0)'), 'cd_OLD_CVA')
        self.assertEqual(resolve_header('ps_lung'), 'ps_Lung')
        self.assertEqual(resolve_header('ab_Polymyxin_B'), 'ab_Polymyxin_B')

    def test_unknown_header_kept(self):
        self.assertEqual(resolve_header('custom_note'), 'custom_note')


class ParseTests(TestCase):

    def test_parse_rows_strips_bom_and_blank_lines(self):
        header, rows = parse_rows(BOM + 'a,b\r\n\r\n1,2\r\n,\r\n')
        self.assertEqual(header, ['a', 'b'])
        self.assertEqual(rows, [['1', '2']])

    def test_parse_rows_requires_data(self):
        with self.assertRaises(ImportFormatError):
            parse_rows('a,b\n')

    def test_parse_usage_range(self):
        self.assertEqual(
            parse_usage_range('2026-01-01 ~ 2026-01-05; 2026-02-01 ~ 2026-02-03'),
            {'start_date': '2026-01-01', 'end_date': '2026-01-05', 'second_use': True,
             'second_start_date': '2026-02-01', 'second_end_date': '2026-02-03'},
        )
        self.assertEqual(
            parse_usage_range('2026-01-01 ~ '),
            {'start_date': '2026-01-01', 'end_date': '', 'second_use': False},
        )

    def test_template(self):
        text = import_template()
        self.assertTrue(text.startswith(BOM))
        header, rows = parse_rows(text)
        self.assertEqual(header, [label for _, label in TEMPLATE_FIELDS])
        self.assertEqual(len(rows[0]), len(TEMPLATE_FIELDS))


class BuildFormDataTests(TestCase):

    def test_template_style_row(self):
        keys = ['medical_record_number', 'primary_source', 'chronic_diseases', 'septic_shock']
        form = build_form_data(keys, ['M1', 'Lung|Blood', 'COPD | AIDS', 'Yes'])
        self.assertEqual(form['primary_source'], ['Lung', 'Blood'])
        self.assertEqual(form['chronic_diseases'], ['COPD', 'AIDS'])
        self.assertEqual(form['septic_shock'], 'Yes')

    def test_export_style_row(self):
        keys = ['medical_record_number', 'primary_source', 'ps_Lung', 'ps_GI',
                'cd_Renal_disease', 'thrombocytopenia', 'icu_at_onset',
                'mic_trimeth_sulfame', 'mic_meropenem', 'antibiotic_classes',
                'ab_Meropenem', 'ab_Colistin', 'username', 'id']
        row = ['M1', '', '1', '0', '1', '1', '0', '\t2/38', '', 'carbapenem',
               '2026-01-01 ~ 2026-01-05', '0', 'nurse', '42']
        form = build_form_data(keys, row)
        self.assertEqual(form['primary_source'], ['Lung'])
        self.assertEqual(form['chronic_diseases'], ['Renal disease'])
        self.assertEqual(form['thrombocytopenia'], 'Yes')
        self.assertEqual(form['icu_at_onset'], 'No')
        self.assertEqual(form['mic_data'], {'trimeth_sulfame': '2/38'})
        self.assertEqual(form['antibiotic_classes'], ['carbapenem'])
        self.assertEqual(
            form['antibiotic_details'],
            {'carbapenem': {'drugs': ['Meropenem'], 'usage': {'Meropenem': {
                'start_date': '2026-01-01', 'end_date': '2026-01-05', 'second_use': False,
            }}}},
        )
        self.assertNotIn('username', form)
        self.assertNotIn('id', form)

    def test_ab_column_adds_owning_class(self):
        form = build_form_data(['ab_Ceftazidime_Avibactam'], ['2026-01-01 ~ 2026-01-02'])
        self.assertEqual(form['antibiotic_classes'], ['beta_lactam'])
        self.assertEqual(drug_class('Ceftazidime-Avibactam'), 'beta_lactam')


class ImportCsvTests(CaseReportTestBase):

    def _template_csv(self, *rows):
        lines = [','.join(label for _, label in TEMPLATE_FIELDS)]
        lines.extend(rows)
        return '\n'.join(lines)

    def test_import_template_rows(self):
        text = self._template_csv(
            'M1,2026-01-01,甲,張醫師,M,60,55,CRKP,2026-01-02,Lung|Urine,HCAP,COPD,No,Yes,3,1.1,5,No,1.3,Yes,Alive,No,10,Yes,Yes,',
            'M2,2026-01-05,乙,張醫師,F,70,50,CRAB,2026-01-06,Blood,HCAP,None,No,No,1,1.0,2,No,1.0,No,Mortality,No,3,No,No,備註',
        )
        result = import_csv(self.user, text)
        self.assertEqual(result, {'success': 2, 'failed': 0, 'errors': []})
        s = Submission.objects.get(medical_record_number='M1')
        self.assertEqual(s.user, self.user)
        self.assertEqual(s.form_data['hospital'], '內湖總院')
        self.assertEqual(s.form_data['primary_source'], ['Lung', 'Urine'])
        self.assertEqual(s.data_status, DataStatus.INCOMPLETE)

    def test_hospital_forced_from_user(self):
        text = 'medical_record_number,admission_date,hospital\nM9,2026-01-01,花蓮總院\n'
        import_csv(self.other, text)
        self.assertEqual(Submission.objects.get().form_data['hospital'], '桃園總院')

    def test_duplicates_reported_per_line(self):
        self._create(mrn='M1', admission='2026-01-01')
        text = 'medical_record_number,admission_date\nM2,2026-01-01\nM1,2026-01-01\n'
        result = import_csv(self.user, text)
        self.assertEqual(result['success'], 1)
        self.assertEqual(result['failed'], 1)
        self.assertEqual(result['errors'], ['第 3 行: 此病歷號與住院日期已存在記錄'])

    def test_missing_admission_date(self):
        result = import_csv(self.user, 'medical_record_number,admission_date\nM1,\n')
        self.assertEqual(result['errors'], ['第 2 行: 缺少必要欄位'])

    def test_admission_date_must_be_iso(self):
        text = (
            'medical_record_number,admission_date\n'
            'X1,2026/1/15\n'
            'X2,15-01-2026 00:00:00\n'
            'X3,2026-01-15\n'
        )
        result = import_csv(self.user, text)
        self.assertEqual(result['success'], 1)
        self.assertEqual(result['failed'], 2)
        self.assertEqual(result['errors'], ['第 2 行: 住院日期格式錯誤', '第 3 行: 住院日期格式錯誤'])
        self.assertEqual(
            list(Submission.objects.values_list('medical_record_number', flat=True)), ['X3'],
        )

    def test_over_long_record_number(self):
        text = f'medical_record_number,admission_date\n{"X" * 80},2026-01-15\nX4,2026-01-15\n'
        result = import_csv(self.user, text)
        self.assertEqual(result['success'], 1)
        self.assertEqual(result['errors'], ['第 2 行: 病歷號長度不可超過50個字元'])
        self.assertEqual(Submission.objects.get().medical_record_number, 'X4')

    def test_rows_without_mrn_skipped(self):
        result = import_csv(self.user, 'medical_record_number,admission_date,name\n,2026-01-01,x\n')
        self.assertEqual(result, {'success': 0, 'failed': 0, 'errors': []})

    def test_export_then_import_restores_form(self):
        original = self._create(mrn='RT-1')
        exported = build_export(select_rows(Submission.objects.select_related('user')))
        original.delete()

        result = import_csv(self.user, exported)
        self.assertEqual(result['success'], 1)
        restored = Submission.objects.get(medical_record_number='RT-1').form_data
        self.assertEqual(restored['primary_source'], ['Lung', 'Urine'])
        self.assertEqual(sorted(restored['chronic_diseases']), ['Diabetes Mellitus', 'OLD CVA'])
        self.assertEqual(restored['thrombocytopenia'], 'Yes')
        self.assertEqual(restored['mic_data']['trimeth_sulfame'], '2/38')
        self.assertEqual(
            restored['antibiotic_details']['carbapenem']['usage']['Meropenem']['second_end_date'],
            '2026-01-30',
        )
        self.assertEqual(restored['antibiotic_classes'], ['carbapenem', 'polymyxin'])


# ============================================================================
# Management Command Tests
# ============================================================================

class ManagementCommandTests(CaseReportTestBase):

    def setUp(self):
        super().setUp()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def test_export_command_writes_file(self):
        self._create()
        path = os.path.join(self.tmpdir.name, 'out.csv')
        out = StringIO()
        call_command('export_case_reports', '--output', path, stdout=out)
        self.assertIn('Exported 1 submissions', out.getvalue())
        with open(path, encoding='utf-8') as fh:
            self.assertTrue(fh.read().startswith(BOM + '病歷號'))

    def test_export_command_nothing_to_export(self):
        with self.assertRaises(CommandError):
            call_command('export_case_reports', '--output', os.path.join(self.tmpdir.name, 'x.csv'))

    def test_import_command(self):
        path = os.path.join(self.tmpdir.name, 'in.csv')
        with open(path, 'w', encoding='utf-8') as fh:
            fh.write(BOM + 'medical_record_number,admission_date\nCMD1,2026-01-01\n')
        out = StringIO()
        call_command('import_case_reports', path, '--user', 'nurse', stdout=out)
        self.assertIn('Imported 1 rows, 0 failed', out.getvalue())
        self.assertTrue(Submission.objects.filter(medical_record_number='CMD1').exists())

    def test_import_command_unknown_user(self):
        with self.assertRaises(CommandError):
            call_command('import_case_reports', 'whatever.csv', '--user', 'ghost')
