"""
CSV batch import of case report forms.

Accepts both the Chinese-labelled import template and files produced by
the CSV export, so a spreadsheet can be exported, corrected and loaded
back. Headers are resolved through every name a column is known by;
one-hot and per-drug columns are folded back into the nested form
document.
"""

import csv
import io
import logging
import re

from django.conf import settings

from .csv_export import BOM, EXPORT_COLUMNS
from .exceptions import CaseReportError, ImportFormatError
from .form_schema import (
    PRIMARY_SOURCES, CHRONIC_DISEASES, BOOLEAN_FIELDS, MIC_KEYS, MULTI_SELECT_FIELDS,
    ANTIBIOTIC_DRUGS, primary_source_column, chronic_disease_column,
    antibiotic_column, mic_column, drug_class,
)
from .models import (
    DataStatus, ADMISSION_DATE_PATTERN, ADMISSION_DATE_INVALID,
    MEDICAL_RECORD_NUMBER_MAX_LENGTH, MEDICAL_RECORD_NUMBER_TOO_LONG,
)
from .services import CaseReportService

logger = logging.getLogger(__name__)

TEMPLATE_FILENAME = 'MHAR-BSI_範本.csv'

# Columns of the import template, with their Chinese labels.
# Hospital is not among them: it always comes from the importing account.
TEMPLATE_FIELDS = [
    ('medical_record_number', '病歷號'),
    ('admission_date', '住院日期(YYYY-MM-DD)'),
    ('name', '姓名'),
    ('recorded_by', '紀錄者'),
    ('sex', '性別(M/F)'),
    ('age', '年齡'),
    ('bw', '體重(kg)'),
    ('pathogen', '病原菌'),
    ('positive_culture_date', '陽性培養日期(YYYY-MM-DD)'),
    ('primary_source', '感染來源(多選用|分隔)'),
    ('type_of_infection', '感染類型'),
    ('chronic_diseases', '慢性疾病(多選用|分隔)'),
    ('thrombocytopenia', '血小板減少(Yes/No)'),
    ('icu_at_onset', '發病時在ICU(Yes/No)'),
    ('duration_before_bacteremia', '菌血症前天數'),
    ('renal_function_admission', '入院腎功能'),
    ('sofa_score', 'SOFA分數'),
    ('septic_shock', '敗血性休克(Yes/No)'),
    ('renal_function_bacteremia', '菌血症時腎功能'),
    ('infection_control', '感染控制'),
    ('crude_mortality', '粗死亡率'),
    ('poly_microbial', '多重微生物(Yes/No)'),
    ('hospital_stay_days', '住院天數'),
    ('clinical_response_14days', '14天臨床反應'),
    ('negative_bc', '陰性血液培養'),
    ('remarks', '備註'),
]

TEMPLATE_SAMPLE = [
    'A123456789', '2026-01-15', '王小明', '張醫師', 'M', '65', '70',
    'CRKP', '2026-01-16', 'Lung|Urine', 'Hospital acquired',
    'Diabetes Mellitus|COPD', 'No', 'No', '5', '1.2', '4', 'No', '1.5',
    'Yes', 'Alive', 'No', '14', 'Yes', 'Yes', '',
]

# Export metadata that is regenerated on save rather than imported
IGNORED_COLUMNS = frozenset({
    'id', 'username', 'user_hospital', 'created_at', 'updated_at',
    'antibiotic_details',
})

_PS_COLUMNS = {primary_source_column(s): s for s in PRIMARY_SOURCES}
_CD_COLUMNS = {chronic_disease_column(d): d for d in CHRONIC_DISEASES}
_AB_COLUMNS = {antibiotic_column(d): d for d in ANTIBIOTIC_DRUGS}
_MIC_COLUMNS = {mic_column(k): k for k in MIC_KEYS}

_TRUTHY = frozenset({'1', 'yes', 'y', 'true'})
_ADMISSION_DATE_RE = re.compile(ADMISSION_DATE_PATTERN)


def _normalize_header(header):
    return re.sub(r'\s+', '', header or '').lower()


def _build_aliases():
    aliases = {}

    def add(alias, key):
        aliases.setdefault(_normalize_header(alias), key)

    for key, label in EXPORT_COLUMNS:
        add(key, key)
        add(label, key)
    for key, label in TEMPLATE_FIELDS:
        add(key, key)
        add(label, key)
    for column in list(_PS_COLUMNS) + list(_CD_COLUMNS) + list(_AB_COLUMNS):
        add(column, column)
    add('hospital', 'hospital')
    add('record_time', 'record_time')
    return aliases


HEADER_ALIASES = _build_aliases()


def resolve_header(header):
    """Map a CSV header to its column key; unknown headers keep their own name."""
    cleaned = (header or '').strip()
    return HEADER_ALIASES.get(_normalize_header(cleaned), cleaned)


def import_template():
    """Template CSV: Chinese header row plus one sample row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator='\n')
    writer.writerow([label for _, label in TEMPLATE_FIELDS])
    writer.writerow(TEMPLATE_SAMPLE)
    return BOM + buffer.getvalue()


def parse_rows(text):
    """Split CSV text into (header, data_rows), dropping blank lines."""
    if text.startswith(BOM):
        text = text[len(BOM):]
    rows = [
        row for row in csv.reader(io.StringIO(text))
        if any(cell.strip() for cell in row)
    ]
    if len(rows) < 2:
        raise ImportFormatError()
    return rows[0], rows[1:]


def _split_multi(value):
    return [item.strip() for item in re.split(r'[|,]', value) if item.strip()]


def parse_usage_range(value):
    """Parse 'start ~ end[; start2 ~ end2]' back into a usage dict."""
    parts = [p.strip() for p in value.split(';')]

    def dates(part):
        start, _, end = part.partition('~')
        return start.strip(), end.strip()

    start, end = dates(parts[0])
    usage = {'start_date': start, 'end_date': end, 'second_use': False}
    if len(parts) > 1 and parts[1]:
        second_start, second_end = dates(parts[1])
        usage.update({
            'second_use': True,
            'second_start_date': second_start,
            'second_end_date': second_end,
        })
    return usage


def _append_unique(items, value):
    if value not in items:
        items.append(value)


def build_form_data(keys, row):
    """Rebuild a nested form document from one CSV row.

    ``keys`` are the resolved column keys of the header row.
    """
    form_data = {}
    selected_sources = []
    selected_diseases = []
    classes = []
    mic_data = {}
    details = {}

    for key, raw in zip(keys, row):
        value = (raw or '').strip()
        if key in IGNORED_COLUMNS:
            continue

        if key in MULTI_SELECT_FIELDS:
            for item in _split_multi(value):
                target = {
                    'primary_source': selected_sources,
                    'chronic_diseases': selected_diseases,
                    'antibiotic_classes': classes,
                }[key]
                _append_unique(target, item)
        elif key in _PS_COLUMNS:
            if value.lower() in _TRUTHY:
                _append_unique(selected_sources, _PS_COLUMNS[key])
        elif key in _CD_COLUMNS:
            if value.lower() in _TRUTHY:
                _append_unique(selected_diseases, _CD_COLUMNS[key])
        elif key in _MIC_COLUMNS:
            if value:
                mic_data[_MIC_COLUMNS[key]] = value
        elif key in _AB_COLUMNS:
            if not value or value == '0':
                continue
            drug = _AB_COLUMNS[key]
            class_key = drug_class(drug)
            class_detail = details.setdefault(class_key, {'drugs': [], 'usage': {}})
            _append_unique(class_detail['drugs'], drug)
            class_detail['usage'][drug] = parse_usage_range(value)
            _append_unique(classes, class_key)
        elif key in BOOLEAN_FIELDS:
            form_data[key] = {'1': 'Yes', '0': 'No'}.get(value, value)
        elif key:
            form_data[key] = value

    form_data['primary_source'] = selected_sources
    form_data['chronic_diseases'] = selected_diseases
    if classes:
        form_data['antibiotic_classes'] = classes
    if details:
        form_data['antibiotic_details'] = details
    if mic_data:
        form_data['mic_data'] = mic_data
    return form_data


def check_natural_key(medical_record_number, admission_date):
    """Apply the record number and admission date rules of the form API."""
    if not admission_date:
        raise CaseReportError('缺少必要欄位')
    if len(medical_record_number) > MEDICAL_RECORD_NUMBER_MAX_LENGTH:
        raise CaseReportError(MEDICAL_RECORD_NUMBER_TOO_LONG)
    if not _ADMISSION_DATE_RE.match(admission_date):
        raise CaseReportError(ADMISSION_DATE_INVALID)


def import_csv(user, text, service=None):
    """Create one submission per data row.

    Returns {'success': n, 'failed': n, 'errors': ['第 N 行: ...']}.
    Raises ImportFormatError when the file has no data rows.
    """
    service = service or CaseReportService()
    header, data_rows = parse_rows(text)
    keys = [resolve_header(h) for h in header]

    result = {'success': 0, 'failed': 0, 'errors': []}
    for index, row in enumerate(data_rows):
        line = index + 2
        form_data = build_form_data(keys, row)
        mrn = form_data.get('medical_record_number', '')
        if not mrn:
            continue

        form_data['hospital'] = user.hospital
        data_status = form_data.pop('data_status', '')
        if data_status not in DataStatus.values:
            data_status = DataStatus.INCOMPLETE

        try:
            check_natural_key(mrn, form_data.get('admission_date', ''))
            service.create(
                user=user,
                medical_record_number=mrn,
                admission_date=form_data['admission_date'],
                form_data=form_data,
                data_status=data_status,
            )
            result['success'] += 1
        except CaseReportError as e:
            result['failed'] += 1
            result['errors'].append(f'第 {line} 行: {e.message}')

    limit = getattr(settings, 'MHAR_BSI', {}).get('IMPORT_MAX_ERRORS_REPORTED', 50)
    if len(result['errors']) > limit:
        hidden = len(result['errors']) - limit
        result['errors'] = result['errors'][:limit] + [f'...還有 {hidden} 個錯誤']

    logger.info(
        "CSV import by %s: %d created, %d failed",
        user.username, result['success'], result['failed'],
    )
    return result
