"""
Exit survey catalog: departments, question codes, rating buckets and question texts.

Every table and column name the store touches is looked up here. Nothing is
derived from request text, so an unknown department or rating can only miss.
"""

DEPARTMENT_NAMES = {
    'CE': 'Civil Engineering',
    'ME': 'Mechanical Engineering',
    'MES': 'Mechanical Engineering (Sandwich)',
    'AE': 'Automobile Engineering',
    'RAC': 'Mechanical Engineering (R & AC)',
    'MC': 'Mechatronics',
    'ECE': 'Electronics & Communication Engineering',
    'EEE': 'Electrical & Electronics Engineering',
    'CT': 'Computer Engineering',
    'TT': 'Textile Technology',
    'PT': 'Printing Technology',
    'CCN': 'Communication & Computer Networking',
}
DEPARTMENTS = list(DEPARTMENT_NAMES)

FEEDBACK_TABLES = {code: f'{code.lower()}_feedback' for code in DEPARTMENTS}

# Roster imports carry free-form department names.
DEPARTMENT_ALIASES = {
    'CIVIL ENGINEERING': 'CE', 'CIVIL': 'CE',
    'MECHANICAL ENGINEERING': 'ME', 'MECHANICAL': 'ME',
    'MECHANICAL ENGINEERING (SANDWICH)': 'MES',
    'AUTOMOBILE ENGINEERING': 'AE', 'AUTOMOBILE': 'AE',
    'MECHANICAL ENGINEERING (R & AC)': 'RAC', 'REFRIGERATION AND AIR CONDITIONING': 'RAC',
    'MECHATRONICS': 'MC',
    'ELECTRONICS AND COMMUNICATION': 'ECE', 'ELECTRONICS & COMMUNICATION ENGINEERING': 'ECE',
    'ELECTRICAL AND ELECTRONICS': 'EEE', 'ELECTRICAL & ELECTRONICS ENGINEERING': 'EEE',
    'COMPUTER TECHNOLOGY': 'CT', 'COMPUTER ENGINEERING': 'CT',
    'TEXTILE TECHNOLOGY': 'TT', 'TEXTILE': 'TT',
    'PRINTING TECHNOLOGY': 'PT', 'PRINTING': 'PT',
    'COMMUNICATION AND COMPUTER NETWORKING': 'CCN',
    'COMMUNICATION & COMPUTER NETWORKING': 'CCN',
    'COMPUTER COMMUNICATION NETWORKS': 'CCN',
}

SECTION_PREFIXES = {
    'facilities': 'A',
    'participation': 'B',
    'accomplishment': 'C',
}
SECTIONS = list(SECTION_PREFIXES)

RATING_COLUMNS = {
    4: 'very_good_4',
    3: 'good_3',
    2: 'average_2',
    1: 'below_average_1',
}
COUNTER_COLUMNS = ('very_good_4', 'good_3', 'average_2', 'below_average_1')

REPORT_TERM = 'VI'

FACILITY_QUESTIONS = [
    'Infrastructure Facility',
    'Library Facility',
    'Drinking Water Facility',
    'Canteen Facility',
    'Transport Facility',
    'Sport Facility',
    'Internet Facility',
    'Hostel Facility',
    'Banking Facility/ATM',
    'Quality of Teaching and Learning',
    'Laboratory Facilities',
    'Industrial Visit',
    'Guest Lecture',
    'Career Guidance / Placement Training',
    'Campus Environment',
    'Toilet Facility (Cleanliness)',
    'Stationary Store Facility',
    'Medical Health Centre',
    'Fitness Centre Facility',
    'Meditation / Yoga Centre Facility',
    'Industrial Collaboration (MoU)',
    'College Office for Information',
    'Availability of Scholarship Facilities',
    'Parking Facilities',
]

PARTICIPATION_QUESTIONS = [
    'Did you participate in Sports events?',
    'Did you participate in Seminar?',
    'Did you participate in Workshop?',
    'Are you did any Industry Project?',
    'Are you member in Students Guild of Service (SGS)?',
    'Are you a NSS Volunteer?',
    'Have you received any scholarships during the study?',
    'Did you attend any certified courses inside the campus (Swelect, Bosch, 3D Modeling, etc.)?',
    'Do you attend any awareness program?',
]

ACCOMPLISHMENT_QUESTIONS = [
    'Basic and Discipline specific knowledge: Apply knowledge of basic mathematics, science and engineering '
    'fundamentals and engineering specialization to solve the engineering problems.',
    'Problem analysis: Identify and analyse well-defined engineering problems using codified standard methods.',
    'Design/development of solutions: Design solutions for well-defined technical problems and assist with the '
    'design of systems components or processes to meet specified needs.',
    'Engineering Tools, Experimentation and Testing: Apply modern engineering tools and appropriate technique to '
    'well-defined engineering problems.',
    'Engineering practices for society, sustainability and environment: Apply appropriate technology in context '
    'of society, sustainability, environment and ethical practices.',
    'Project Management: Use engineering management principles individually, as a team member or a leader to '
    'manage projects and effectively communicate about well-defined engineering activities.',
    'Life-long learning: Ability to analyse individual needs and engage in updating in the context of '
    'technological changes.',
    'Program Specific Outcome (PSO1)',
    'Program Specific Outcome (PSO2)',
]

SECTION_QUESTIONS = {
    'facilities': FACILITY_QUESTIONS,
    'participation': PARTICIPATION_QUESTIONS,
    'accomplishment': ACCOMPLISHMENT_QUESTIONS,
}

# (pso1, pso2) per department; shown in place of accomplishment questions 8 and 9.
DEPARTMENT_PSO = {
    'CE': (
        'Perform digital surveying, prepare plans and estimation using advanced software tools.',
        'Work effectively in multidisciplinary environments for infrastructure development.',
    ),
    'ME': (
        'Design and develop mechanical products using modern CAD/CAM and quality control tools.',
        'Demonstrate functional competencies aligned with industrial practices.',
    ),
    'MES': (
        'Design and develop mechanical products through experiential industrial learning.',
        'Apply technical skills gained through industry exposure to solve engineering problems.',
    ),
    'AE': (
        'Apply the core knowledge and technological advances in automotive industries.',
        'Demonstrate proficiency in the use of automobile shop tools and equipment to diagnose and repair '
        'vehicle systems.',
    ),
    'RAC': (
        'Design and develop refrigeration and air-conditioning systems using modern technology.',
        'Apply acquired knowledge for sustainable industrial and societal development.',
    ),
    'MC': (
        'Integrate mechanical, electronic, and computing systems to design and develop mechatronic products.',
        'Apply mechatronics principles to automate and optimize industrial processes for societal benefit.',
    ),
    'ECE': (
        'Design and develop electronic and communication systems using modern engineering tools.',
        'Apply electronics and communication knowledge for industrial and societal development.',
    ),
    'EEE': (
        'Design and develop electrical systems and apply power electronics for industrial applications.',
        'Demonstrate competency in electrical installation, maintenance, and energy management.',
    ),
    'CT': (
        'Develop need-based applications using appropriate computing technologies.',
        'Apply acquired computing skills for societal and industrial benefits.',
    ),
    'TT': (
        'Manage various sections of textile mills using discipline knowledge.',
        'Apply technical and professional skills for sustainable growth and societal development.',
    ),
    'PT': (
        'Hands-on training with complete in-house production setup.',
        'Gain domain knowledge through professional software used in printing and allied industries.',
    ),
    'CCN': (
        'Design and implement computer communication networks using modern networking technologies.',
        'Apply networking and communication skills to solve real-world connectivity and infrastructure '
        'problems.',
    ),
}


def validate_catalog():
    """Check the department and rating mappings agree with each other."""
    missing_tables = sorted(set(DEPARTMENTS) - set(FEEDBACK_TABLES))
    missing_pso = sorted(set(DEPARTMENTS) - set(DEPARTMENT_PSO))
    if missing_tables or missing_pso:
        raise RuntimeError(
            f"Department catalog incomplete. tables={missing_tables or 'none'}, pso={missing_pso or 'none'}"
        )
    unknown_aliases = sorted(code for code in DEPARTMENT_ALIASES.values() if code not in DEPARTMENT_NAMES)
    if unknown_aliases:
        raise RuntimeError(f"Department aliases point at unknown codes: {unknown_aliases}")
    if sorted(RATING_COLUMNS.values()) != sorted(COUNTER_COLUMNS):
        raise RuntimeError("Rating buckets and counter columns disagree.")


validate_catalog()


def is_department(value):
    return (value or '') in DEPARTMENT_NAMES


def normalize_department(value):
    """Map a department code or a roster spelling to a department code, or None."""
    key = ' '.join((value or '').strip().upper().split())
    if not key:
        return None
    if key in DEPARTMENT_NAMES:
        return key
    return DEPARTMENT_ALIASES.get(key)


def feedback_table(department):
    """Counter table for a known department code. Raises KeyError otherwise."""
    return FEEDBACK_TABLES[department]


def question_code(section, question_id):
    """'facilities', 3 -> 'A3'. Unknown sections and ids outside the section give None."""
    prefix = SECTION_PREFIXES.get(section)
    if not prefix:
        return None
    index = _exact_int(question_id)
    if index is None or not 1 <= index <= len(SECTION_QUESTIONS[section]):
        return None
    return f'{prefix}{index}'


def rating_column(rating):
    return RATING_COLUMNS.get(_exact_int(rating))


def _exact_int(value):
    # 3, '3' and ' 3 ' pass; 3.9, 4.0, '4.0' and True do not
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if str(number) != str(value).strip():
        return None
    return number


def all_question_codes():
    """Every question code in survey order: A1..A24, B1..B9, C1..C9."""
    codes = []
    for section in SECTIONS:
        for index in range(1, len(SECTION_QUESTIONS[section]) + 1):
            codes.append(f'{SECTION_PREFIXES[section]}{index}')
    return codes


def questions_for(department):
    """Question list per section with the department's PSO wording filled in."""
    pso1, pso2 = DEPARTMENT_PSO[department]
    sections = {}
    for section in SECTIONS:
        items = []
        for index, text in enumerate(SECTION_QUESTIONS[section], start=1):
            if section == 'accomplishment' and index == 8:
                text = f'{text}: {pso1}'
            elif section == 'accomplishment' and index == 9:
                text = f'{text}: {pso2}'
            items.append({
                'id': index,
                'code': f'{SECTION_PREFIXES[section]}{index}',
                'section': section,
                'text': text,
            })
        sections[section] = items
    return sections
