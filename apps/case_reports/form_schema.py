"""
Fixed vocabulary of the MHAR-BSI case report form.

The option lists below are the values stored inside Submission.form_data.
CSV export and import both derive their column layout from them.
"""

import re

from apps.authentication.models import Hospital

PATHOGENS = ['CRKP', 'CRAB', 'CRECOLI', 'CRPA']

PRIMARY_SOURCES = ['Lung', 'Blood', 'Wound', 'GI', 'Urine', 'CLABSI']

INFECTION_TYPES = ['Hospital acquired', 'HCAP', '社區(HCAP排除)']

CHRONIC_DISEASES = [
    'MI', 'HCVD', 'OLD CVA', 'Dementia', 'Liver Cirrhosis',
    'Diabetes Mellitus', 'Renal disease', 'Autoimmune',
    'Leukemia', 'Lymphoma', 'Solid Tumor', 'AIDS',
    'COPD', 'Connective tissue disease', 'PUD', 'None',
]

CRUDE_MORTALITY_OPTIONS = ['Mortality', 'Alive']

# Yes/No questions, exported as 1/0
BOOLEAN_FIELDS = [
    'thrombocytopenia', 'icu_at_onset', 'septic_shock',
    'infection_control', 'poly_microbial', 'clinical_response_14days',
    'negative_bc',
]

HOSPITALS = list(Hospital.values)

# (form key, display name, allowed MIC values)
MIC_ANTIBIOTICS = [
    ('ampicillin', 'AMPICILLIN', ['≤2', '4', '8', '≥16']),
    ('cefazolin', 'CEFAZOLIN', ['≤0.5', '1', '2', '4', '≥8']),
    ('gentamicin', 'GENTAMICIN', ['≤1', '2', '4', '≥8']),
    ('amikacin', 'AMIKACIN', ['≤4', '8', '16', '≥32']),
    ('trimeth_sulfame', 'TRIMETH/SULFAME', ['≤0.5/9.5', '1/19', '2/38', '≥4/76']),
    ('piperacillin_taz', 'PIPERACILLIN-TAZ', ['≤4/4', '8/4', '16/4', '32/4', '64/4', '≥128/4']),
    ('cefuroxime', 'CEFUROXIME', ['≤1', '2', '4', '8', '16', '≥32']),
    ('ceftriaxone', 'CEFTRIAXONE', ['≤0.25', '0.5', '1', '2', '≥4']),
    ('meropenem', 'MEROPENEM', ['≤0.25', '0.5', '1', '2', '4', '≥8']),
    ('doripenem', 'DORIPENEM', ['≤0.5', '1', '2', '≥4']),
    ('imipenem', 'IMIPENEM', ['≤1', '2', '4', '≥8']),
    ('ertapenem', 'ERTAPENEM', ['≤0.5', '1', '2', '≥4']),
    ('cefepime', 'CEFEPIME', ['≤2', '4', '8', '≥16']),
    ('tigecycline', 'TIGECYCLINE', ['≤0.5', '1', '2', '4', '≥8']),
    ('levofloxacin', 'LEVOFLOXACIN', ['≤0.5', '1', '2', '4', '≥8']),
    ('colistin', 'COLISTIN', ['≤0.5', '1', '2', '≥4']),
    ('flomoxef', 'FLOMOXEF', ['≤4', '8', '16', '≥32']),
    ('cefoperazo_sulba', 'CEFOPERAZO/SULBA', ['≤8/4', '16/8', '32/16', '≥64/32']),
    ('caz_avibactam', 'CAZ/Avibactam', ['≤2/4', '4/4', '8/4', '≥16/4']),
    ('ceftolozane', 'CEFTOLOZANE', ['≤2/4', '4/4', '8/4', '≥16/4']),
]

MIC_KEYS = [key for key, _, _ in MIC_ANTIBIOTICS]

# (class key, display name, member drugs)
ANTIBIOTIC_CLASSES = [
    ('aminoglycoside', 'Aminoglycoside', ['Amikacin', 'Gentamicin', 'Tobramycin']),
    ('carbapenem', 'Carbapenem', ['Meropenem', 'Imipenem', 'Ertapenem', 'Doripenem']),
    ('cephalosporin', 'Cephalosporin', ['Ceftriaxone', 'Cefepime', 'Ceftazidime', 'Cefazolin']),
    ('fluoroquinolone', 'Fluoroquinolone', ['Levofloxacin', 'Ciprofloxacin', 'Moxifloxacin']),
    ('polymyxin', 'Polymyxin', ['Colistin', 'Polymyxin B']),
    ('tigecycline', 'Tigecycline', ['Tigecycline']),
    ('beta_lactam', 'Beta-lactam / Beta-lactamase inhibitor', [
        'Piperacillin-Tazobactam', 'Ampicillin-Sulbactam',
        'Ceftazidime-Avibactam', 'Ceftolozane-Tazobactam',
    ]),
    ('sulfonamide', 'Sulfonamide', ['Trimethoprim-Sulfamethoxazole']),
    ('other', 'Other', ['Fosfomycin', 'Aztreonam']),
]

ANTIBIOTIC_DRUGS = [drug for _, _, drugs in ANTIBIOTIC_CLASSES for drug in drugs]


def drug_class(drug):
    """Class key a drug belongs to, or None for unknown drugs."""
    for key, _, drugs in ANTIBIOTIC_CLASSES:
        if drug in drugs:
            return key
    return None


# ----------------------------------------------------------------------
# Flat column keys
# ----------------------------------------------------------------------

def primary_source_column(source):
    return 'ps_' + re.sub(r'\s+', '_', source)


def chronic_disease_column(disease):
    return 'cd_' + re.sub(r'\s+', '_', disease)


def antibiotic_column(drug):
    return 'ab_' + re.sub(r'[\s/-]', '_', drug)


def mic_column(key):
    return 'mic_' + re.sub(r'[/\s-]', '_', key.lower())


def one_hot_label(option):
    return f'{option} (Yes=1, No=0)'


# ----------------------------------------------------------------------
# Document shape
# ----------------------------------------------------------------------

# Answers that must be a single value
SCALAR_FIELDS = [
    'medical_record_number', 'admission_date', 'hospital', 'pathogen',
    'positive_culture_date', 'type_of_infection', 'crude_mortality',
    'data_status',
] + BOOLEAN_FIELDS

MULTI_SELECT_FIELDS = ['primary_source', 'chronic_diseases', 'antibiotic_classes']


def is_scalar(value):
    return value is None or isinstance(value, (str, int, float, bool))


def _valid_antibiotic_details(details):
    if not isinstance(details, dict):
        return False
    for class_detail in details.values():
        if not isinstance(class_detail, dict):
            return False
        drugs = class_detail.get('drugs') or []
        usage = class_detail.get('usage') or {}
        if not isinstance(drugs, list) or not isinstance(usage, dict):
            return False
        if not all(u is None or isinstance(u, dict) for u in usage.values()):
            return False
    return True


def malformed_fields(form_data):
    """Keys of a form document whose values have the wrong shape.

    Export and statistics read these keys expecting:
    single values for SCALAR_FIELDS, lists for MULTI_SELECT_FIELDS,
    ``{antibiotic: result}`` for mic_data and
    ``{class: {'drugs': [...], 'usage': {drug: {...}}}}`` for
    antibiotic_details.
    """
    bad = [key for key in SCALAR_FIELDS if key in form_data and not is_scalar(form_data[key])]
    for key in MULTI_SELECT_FIELDS:
        value = form_data.get(key)
        if value is not None and not (
            isinstance(value, list) and all(is_scalar(v) for v in value)
        ):
            bad.append(key)
    mic_data = form_data.get('mic_data')
    if mic_data is not None and not (
        isinstance(mic_data, dict) and all(is_scalar(v) for v in mic_data.values())
    ):
        bad.append('mic_data')
    details = form_data.get('antibiotic_details')
    if details is not None and not _valid_antibiotic_details(details):
        bad.append('antibiotic_details')
    return bad
