"""
CSV export of case report forms.

Each submission is flattened into a single spreadsheet row:
multi-select answers become one-hot 1/0 columns, Yes/No answers become
1/0, MIC results get one column per antibiotic and antibiotic usage is
rendered both as a readable summary and as one date-range column per
drug. Columns follow a fixed label table so analysts always get the
same layout.
"""

import csv
import io
import json
import logging
import re

from django.conf import settings
from django.utils import timezone

from .exceptions import NothingToExport
from .form_schema import (
    PRIMARY_SOURCES, CHRONIC_DISEASES, BOOLEAN_FIELDS, MIC_ANTIBIOTICS,
    ANTIBIOTIC_DRUGS, primary_source_column, chronic_disease_column,
    antibiotic_column, mic_column, one_hot_label, is_scalar,
)

logger = logging.getLogger(__name__)

BOM = '\ufeff'

# Spreadsheets turn "8/16" into a date unless the cell starts with a tab
_FRACTION_RE = re.compile(r'^\d+[/-]\d+')


def _build_columns():
    columns = [
        ('medical_record_number', '病歷號'),
        ('admission_date', 'Admission Date'),
        ('name', 'Name'),
        ('recorded_by', 'Recorded By'),
        ('sex', 'Sex'),
        ('age', 'Age'),
        ('bw', 'BW'),
        ('hospital', 'Hospital'),
        ('pathogen', 'Pathogen'),
        ('positive_culture_date', 'Positive Culture Date'),
        ('primary_source', 'Primary Source'),
    ]
    columns += [(primary_source_column(s), one_hot_label(s)) for s in PRIMARY_SOURCES]
    columns += [
        ('type_of_infection', 'Type of Infection'),
        ('chronic_diseases', 'Chronic Diseases'),
    ]
    columns += [(chronic_disease_column(d), one_hot_label(d)) for d in CHRONIC_DISEASES]
    columns += [
        ('thrombocytopenia', 'Thrombocytopenia (Yes=1, No=0)'),
        ('icu_at_onset', 'ICU at Bacteremia Onset (Yes=1, No=0)'),
        ('duration_before_bacteremia', 'Duration before Bacteremia (days)'),
        ('renal_function_admission', 'Renal function at admission (Cr)'),
        ('sofa_score', 'SOFA Score'),
        ('septic_shock', 'Septic Shock (Yes=1, No=0)'),
        ('renal_function_bacteremia', 'Renal function at bacteremia'),
    ]
    columns += [(mic_column(key), f'MIC_{name}') for key, name, _ in MIC_ANTIBIOTICS]
    columns += [
        ('antibiotic_classes', 'Antibiotic Classes'),
        ('antibiotic_details', 'Antibiotic Details'),
        ('infection_control', 'Infection Control Measure (Yes=1, No=0)'),
        ('crude_mortality', 'Crude Mortality'),
        ('poly_microbial', 'Poly Microbial (Yes=1, No=0)'),
        ('hospital_stay_days', 'Hospital Stay after Bacteremia (days)'),
        ('clinical_response_14days', 'Clinical Response at 14 days (Yes=1, No=0)'),
        ('negative_bc', 'Negative b/c During Treatment (Yes=1, No=0)'),
        ('remarks', 'Remarks'),
        ('data_status', 'Data Status'),
        ('username', 'Submitted By'),
        ('user_hospital', 'User Hospital'),
        ('created_at', 'Created At'),
        ('updated_at', 'Updated At'),
        ('id', 'Record ID'),
    ]
    return columns


EXPORT_COLUMNS = _build_columns()
EXPORT_LABELS = dict(EXPORT_COLUMNS)


def _format_timestamp(value):
    if not value:
        return ''
    return timezone.localtime(value).strftime('%Y-%m-%d %H:%M:%S')


def _date_range(start, end, missing=''):
    return f"{start or missing} ~ {end or missing}"


def format_usage_range(usage):
    """'start ~ end' plus '; start2 ~ end2' when the drug was given twice."""
    text = _date_range(usage.get('start_date'), usage.get('end_date'))
    if usage.get('second_use'):
        text += '; ' + _date_range(usage.get('second_start_date'), usage.get('second_end_date'))
    return text


def format_usage_summary(drug, usage):
    """'Drug (start ~ end)' with unknown dates shown as '?'."""
    text = f"{drug} ({_date_range(usage.get('start_date'), usage.get('end_date'), '?')})"
    if usage.get('second_use'):
        text += '; ' + _date_range(usage.get('second_start_date'), usage.get('second_end_date'), '?')
    return text


def flatten_submission(submission):
    """Flatten one submission into a {column_key: value} dict."""
    form_data = submission.form_data or {}
    user = submission.user

    flat = {
        'id': submission.pk,
        'medical_record_number': submission.medical_record_number,
        'admission_date': submission.admission_date,
        'username': user.username if user else '',
        'user_hospital': user.hospital if user else '',
        'created_at': _format_timestamp(submission.created_at),
        'updated_at': _format_timestamp(submission.updated_at),
        'data_status': submission.data_status,
        'primary_source': '',
        'chronic_diseases': '',
    }
    for source in PRIMARY_SOURCES:
        flat[primary_source_column(source)] = 0
    for disease in CHRONIC_DISEASES:
        flat[chronic_disease_column(disease)] = 0
    for drug in ANTIBIOTIC_DRUGS:
        flat[antibiotic_column(drug)] = 0

    for key, value in form_data.items():
        if key == 'primary_source' and isinstance(value, list):
            for option in value:
                if option in PRIMARY_SOURCES:
                    flat[primary_source_column(option)] = 1
        elif key == 'chronic_diseases' and isinstance(value, list):
            for option in value:
                if option in CHRONIC_DISEASES:
                    flat[chronic_disease_column(option)] = 1
        elif key in BOOLEAN_FIELDS:
            if value == 'Yes':
                flat[key] = 1
            elif value == 'No':
                flat[key] = 0
            else:
                flat[key] = value
        elif key == 'mic_data' and isinstance(value, dict):
            for drug, result in value.items():
                if not is_scalar(result):
                    continue
                if isinstance(result, str) and _FRACTION_RE.match(result):
                    result = f'\t{result}'
                flat[mic_column(drug)] = result
        elif key == 'antibiotic_details' and isinstance(value, dict):
            summary = []
            for class_detail in value.values():
                if not isinstance(class_detail, dict):
                    continue
                usage_map = class_detail.get('usage')
                if not isinstance(usage_map, dict):
                    continue
                for drug, usage in usage_map.items():
                    if not isinstance(usage, dict):
                        usage = {}
                    summary.append(format_usage_summary(drug, usage))
                    if drug in ANTIBIOTIC_DRUGS:
                        flat[antibiotic_column(drug)] = format_usage_range(usage)
            flat[key] = ' | '.join(summary)
        elif key == 'antibiotic_classes' and isinstance(value, list):
            flat[key] = ', '.join(dict.fromkeys(str(v) for v in value))
        elif isinstance(value, list):
            flat[key] = ', '.join(str(v) for v in value)
        elif isinstance(value, dict):
            flat[key] = json.dumps(value, ensure_ascii=False)
        else:
            flat[key] = value

    return flat


def build_export(rows):
    """Render flattened rows as CSV text (UTF-8 BOM, labelled header)."""
    present = {}
    for row in rows:
        for key in row:
            present.setdefault(key, None)

    keys = [key for key, _ in EXPORT_COLUMNS if key in present]
    keys += [key for key in present if key not in EXPORT_LABELS]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\r\n')
    writer.writerow([EXPORT_LABELS.get(key, key) for key in keys])
    for row in rows:
        writer.writerow(['' if row.get(key) is None else row.get(key) for key in keys])
    return BOM + buffer.getvalue()


def _split_list(value):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = []
        for v in value:
            items.extend(_split_list(v))
        return items
    return [item.strip() for item in str(value).split(',') if item.strip()]


def _matches(row, filters):
    admission_date = str(row.get('admission_date') or '')
    culture_date = str(row.get('positive_culture_date') or '')

    if filters.get('admission_start') and admission_date < filters['admission_start']:
        return False
    if filters.get('admission_end') and admission_date > filters['admission_end']:
        return False
    if filters.get('culture_start') and culture_date < filters['culture_start']:
        return False
    if filters.get('culture_end') and culture_date > filters['culture_end']:
        return False
    if filters.get('hospital') and row.get('user_hospital') != filters['hospital']:
        return False
    pathogens = _split_list(filters.get('pathogens'))
    if pathogens and row.get('pathogen', '') not in pathogens:
        return False
    mrn = filters.get('mrn')
    if mrn and mrn.lower() not in str(row.get('medical_record_number') or '').lower():
        return False
    return True


def select_rows(submissions, filters=None):
    """Flatten and filter submissions for export.

    ``ids`` selects exact records and overrides every other filter.
    Raises NothingToExport when nothing is left.
    """
    filters = {k: v for k, v in (filters or {}).items() if v not in (None, '', [])}
    submissions = list(submissions)
    if not submissions:
        raise NothingToExport()

    ids = _split_list(filters.get('ids'))
    if ids:
        selected = [s for s in submissions if str(s.pk) in ids]
        rows = [flatten_submission(s) for s in selected]
    else:
        rows = [r for r in (flatten_submission(s) for s in submissions) if _matches(r, filters)]

    logger.info("Export: total %d, selected %d", len(submissions), len(rows))
    if not rows:
        raise NothingToExport('無符合篩選條件的資料可匯出')
    return rows


def export_filename(today=None):
    prefix = getattr(settings, 'MHAR_BSI', {}).get('EXPORT_FILENAME_PREFIX', 'mhar-bsi-export')
    today = today or timezone.localdate()
    return f"{prefix}-{today.isoformat()}.csv"
