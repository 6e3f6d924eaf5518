"""
Feedback submission and aggregation workflow.

Handlers here take the aggregate store as an argument. The store owns the
roster (one row per student) and one counter table per department; see
db.PostgresStore for the PostgreSQL implementation.
"""

import enum
import logging
import secrets
import time
from datetime import datetime, timezone

from catalog import (
    COUNTER_COLUMNS,
    DEPARTMENT_NAMES,
    DEPARTMENTS,
    REPORT_TERM,
    SECTION_PREFIXES,
    SECTIONS,
    feedback_table,
    is_department,
    normalize_department,
    question_code,
    questions_for,
    rating_column,
)

STORE_UNREACHABLE_ACTION = 'Ensure the database is reachable and DATABASE_URL is correct.'
ALREADY_SUBMITTED_ACTION = 'Please contact the department admin if you believe this is an error.'


class SurveyError(Exception):
    """Base error; carries the HTTP status and the message shown to the client."""

    status = 500

    def __init__(self, message, suggested_action=None):
        super().__init__(message)
        self.message = message
        self.suggested_action = suggested_action

    def to_dict(self):
        payload = {'error': self.message}
        if self.suggested_action:
            payload['suggestedAction'] = self.suggested_action
        return payload


class ValidationError(SurveyError):
    status = 400


class Unauthorized(SurveyError):
    status = 401


class Forbidden(SurveyError):
    status = 403


class StoreError(SurveyError):
    status = 500


class TransientStoreError(StoreError):
    """Connectivity or timeout failure; safe to retry."""


class PersistenceError(SurveyError):
    status = 500


class IncrementOutcome(enum.Enum):
    APPLIED = 'applied'
    DEGRADED = 'degraded'
    SKIPPED = 'skipped'
    FAILED = 'failed'


class RetryPolicy:
    """Fixed-delay retry on TransientStoreError.

    `retries` counts the extra attempts, so RetryPolicy(3, 2.0) tries four
    times. Any other error is raised on the first attempt.
    """

    def __init__(self, retries, delay, sleep=time.sleep):
        if retries < 0:
            raise ValueError('retries must be >= 0')
        self.retries = retries
        self.delay = delay
        self.sleep = sleep

    def run(self, operation, label='store call'):
        attempt = 0
        while True:
            try:
                return operation()
            except TransientStoreError as exc:
                if attempt >= self.retries:
                    logging.error("%s failed after %s attempt(s): %s", label, attempt + 1, exc)
                    raise
                attempt += 1
                logging.warning(
                    "%s failed (attempt %s of %s), retrying in %ss: %s",
                    label, attempt, self.retries + 1, self.delay, exc,
                )
                self.sleep(self.delay)


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().upper() in ('TRUE', 'T', '1', 'YES')
    return bool(value)


def _normalize_roll_no(value):
    if not isinstance(value, str):
        return ''
    return value.strip().upper()


def _question_sort_key(code):
    code = (code or '').upper()
    prefixes = list(SECTION_PREFIXES.values())
    prefix = code[:1]
    try:
        index = int(code[1:])
    except ValueError:
        index = 0
    return (prefixes.index(prefix) if prefix in prefixes else len(prefixes), index, code)


def _isoformat(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


# ==================== COUNTER INCREMENT ====================

def increment(store, department, code, column, now=None):
    """Add one vote to a department/question counter.

    The atomic store call is tried first. If it errors, the row is read,
    bumped locally and written back; that path can lose an update when two
    submissions hit the same row at once. Store failures are logged and
    reported as FAILED rather than raised.
    """
    if not code or not column:
        return IncrementOutcome.SKIPPED
    if not is_department(department):
        raise ValidationError(f'Unknown department: {department}')
    table = feedback_table(department)

    try:
        store.increment_counter(table, code, column)
        return IncrementOutcome.APPLIED
    except StoreError as exc:
        logging.warning("Atomic increment failed for %s/%s, using manual update: %s", table, code, exc)

    try:
        row = store.read_counter_row(table, code)
        if not row:
            logging.warning("No counter row for %s/%s; increment dropped.", table, code)
            return IncrementOutcome.FAILED
        stamp = now or datetime.now(timezone.utc)
        store.write_counter_row(table, code, {
            column: int(row.get(column) or 0) + 1,
            'total_count': int(row.get('total_count') or 0) + 1,
            'updated_at': stamp,
        })
        return IncrementOutcome.DEGRADED
    except StoreError as exc:
        logging.warning("Could not increment counter for %s/%s: %s", table, code, exc)
        return IncrementOutcome.FAILED


# ==================== SUBMISSION ====================

def submit(store, roll_no, department=None, answers=None):
    """Apply one student's answers to the counters, then mark the student submitted.

    Counter updates are best effort: each answer is attempted once, in
    order, and a failure never stops the batch. Marking the student is the
    authoritative step; if it fails the counters already applied stay
    applied and PersistenceError is raised.
    """
    roll_upper = _normalize_roll_no(roll_no)
    if not roll_upper:
        raise ValidationError('Roll number is required to submit feedback')

    tally = {outcome.value: 0 for outcome in IncrementOutcome}
    if department and isinstance(answers, list):
        dept_code = normalize_department(department) if isinstance(department, str) else None
        if not dept_code:
            raise ValidationError(f'Unknown department: {department}')
        for answer in answers:
            if not isinstance(answer, dict):
                tally[IncrementOutcome.SKIPPED.value] += 1
                continue
            code = question_code(answer.get('section'), answer.get('questionId'))
            column = rating_column(answer.get('rating'))
            outcome = increment(store, dept_code, code, column)
            if outcome is IncrementOutcome.SKIPPED:
                logging.info("Skipped answer %r for %s", answer, roll_upper)
            tally[outcome.value] += 1

    try:
        updated = store.mark_submitted(roll_upper)
    except StoreError as exc:
        logging.error("Could not mark %s as submitted: %s", roll_upper, exc)
        raise PersistenceError(f'Database Error: {exc.message}', STORE_UNREACHABLE_ACTION) from exc
    if not updated:
        logging.warning("Feedback accepted for %s but no roster row was updated.", roll_upper)

    logging.info("Feedback submitted for %s: %s", roll_upper, tally)
    return {'accepted': True, **tally}


# ==================== QUERIES ====================

def list_students(store, policy):
    """Roster projection ordered by roll number, retried on transient errors."""
    try:
        rows = policy.run(store.list_students, label='List students')
    except TransientStoreError as exc:
        raise PersistenceError(f'Database Error: {exc.message}', STORE_UNREACHABLE_ACTION) from exc
    students = [
        {
            'rollNo': row.get('rollno'),
            'name': row.get('name'),
            'department': row.get('department'),
            'hasSubmitted': _as_bool(row.get('status')),
        }
        for row in rows or []
    ]
    students.sort(key=lambda s: s['rollNo'] or '')
    return students


def resolve_department(department, default_department):
    """Path parameter to department code. 'ALL' means the default department."""
    key = (department or '').strip().upper()
    if not key or key == 'ALL':
        return default_department
    if not is_department(key):
        raise ValidationError(f'Unknown department: {department}')
    return key


def get_department_aggregate(store, department, default_department):
    """Counter rows for one department.

    'ALL' is served from the default department's table, not a union of
    every department.
    """
    code = resolve_department(department, default_department)
    try:
        rows = store.list_counter_rows(feedback_table(code))
    except StoreError as exc:
        logging.error("Failed to load feedback for %s: %s", code, exc)
        raise StoreError('Failed to load feedback', STORE_UNREACHABLE_ACTION) from exc
    result = []
    for row in rows or []:
        item = dict(row)
        item['updated_at'] = _isoformat(item.get('updated_at'))
        result.append(item)
    result.sort(key=lambda r: _question_sort_key(r.get('question_code')))
    return result


def summarize(students, default_department):
    """Submitted/pending totals overall and per department."""
    per_dept = {code: {'submitted': 0, 'pending': 0} for code in DEPARTMENTS}
    for student in students:
        code = normalize_department(student.get('department')) or default_department
        key = 'submitted' if student.get('hasSubmitted') else 'pending'
        per_dept[code][key] += 1
    submitted = sum(d['submitted'] for d in per_dept.values())
    return {
        'total': len(students),
        'submitted': submitted,
        'pending': len(students) - submitted,
        'departments': [
            {'department': code, 'name': DEPARTMENT_NAMES[code], **per_dept[code]}
            for code in DEPARTMENTS
        ],
    }


def build_report(store, department, default_department, policy):
    """Printable per-department report: catalog questions joined with counters."""
    code = resolve_department(department, default_department)
    rows = get_department_aggregate(store, code, default_department)
    by_code = {(row.get('question_code') or '').upper(): row for row in rows}
    students = list_students(store, policy)
    enrolled = sum(
        1 for s in students
        if (normalize_department(s.get('department')) or default_department) == code
    )

    sections = {}
    for section, questions in questions_for(code).items():
        lines = []
        for question in questions:
            row = by_code.get(question['code']) or {}
            lines.append({
                'questionCode': question['code'],
                'text': question['text'],
                'veryGood': int(row.get('very_good_4') or 0),
                'good': int(row.get('good_3') or 0),
                'average': int(row.get('average_2') or 0),
                'belowAverage': int(row.get('below_average_1') or 0),
                'total': int(row.get('total_count') or 0),
            })
        sections[section] = lines

    return {
        'department': code,
        'name': DEPARTMENT_NAMES[code],
        'term': REPORT_TERM,
        'totalStudents': max((int(r.get('total_count') or 0) for r in rows), default=0),
        'enrolled': enrolled,
        'sections': {section: sections[section] for section in SECTIONS},
    }


def counter_row_is_consistent(row):
    """True when total_count equals the sum of the four rating buckets."""
    return int(row.get('total_count') or 0) == sum(int(row.get(col) or 0) for col in COUNTER_COLUMNS)


# ==================== AUTHENTICATION ====================

def _same_secret(given, expected):
    if not isinstance(given, str):
        return False
    return secrets.compare_digest(given.encode('utf-8'), expected.encode('utf-8'))


def authenticate(store, credentials, admin_username, admin_password, default_department, policy):
    """Check login credentials and return the client-side user view.

    Students log in with their roll number as both id and password. The
    submitted flag is always re-read from the store, so a student who has
    already submitted is refused even with a stale client session.
    """
    role = credentials.get('role')

    if role == 'admin':
        if _same_secret(credentials.get('username'), admin_username) and \
                _same_secret(credentials.get('password'), admin_password):
            logging.info("Admin login succeeded.")
            return {'role': 'admin', 'username': admin_username}
        logging.info("Admin login rejected.")
        raise Unauthorized('Invalid Admin Credentials')

    if role != 'student':
        raise ValidationError('Invalid role specified')

    roll_upper = _normalize_roll_no(credentials.get('rollNo'))
    student = None
    if roll_upper:
        try:
            student = policy.run(lambda: store.get_student(roll_upper), label=f'Student lookup {roll_upper}')
        except TransientStoreError as exc:
            raise PersistenceError('Database connection failed.', STORE_UNREACHABLE_ACTION) from exc

    if not student:
        logging.info("Student login rejected: %s not found.", roll_upper or '<empty>')
        raise Unauthorized('Invalid Login Credentials - Student not found')

    already_submitted = _as_bool(student.get('status'))
    if already_submitted:
        logging.info("Student login refused: %s already submitted.", roll_upper)
        raise Forbidden('Feedback already submitted', ALREADY_SUBMITTED_ACTION)

    stored_roll = _normalize_roll_no(student.get('rollno'))
    if stored_roll != _normalize_roll_no(credentials.get('password')):
        logging.info("Student login rejected: password mismatch for %s.", roll_upper)
        raise Unauthorized('Invalid Login Credentials (Roll No/Password mismatch)')

    raw_department = (student.get('department') or '').strip()
    department = normalize_department(raw_department)
    if department is None:
        if raw_department:
            logging.warning("Roster department '%s' for %s is unknown; using %s",
                            raw_department, roll_upper, default_department)
        department = default_department
    logging.info("Student login succeeded: %s", roll_upper)
    return {
        'role': 'student',
        'rollNo': student.get('rollno'),
        'name': student.get('name'),
        'department': department,
        'hasSubmitted': already_submitted,
    }
