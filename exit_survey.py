"""
Exit Survey Feedback Portal - JSON API

Students log in with their roll number, submit one rating form, and the
ratings are folded into per-department question counters that admins
review and print.
"""

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

import os
import logging
from dotenv import load_dotenv

from catalog import is_department, validate_catalog, questions_for
import survey
from survey import RetryPolicy, SurveyError, ValidationError

load_dotenv()

EXTENSION_KEY = 'exit_survey'
STUDENT_LIST_RETRIES = 3
LOGIN_RETRIES = 2


def _env_float(environ, name, default):
    raw = (environ.get(name) or '').strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number of seconds.")
    if value < 0:
        raise RuntimeError(f"{name} cannot be negative.")
    return value


def load_settings(environ=None):
    """Read and validate settings from the environment."""
    environ = os.environ if environ is None else environ
    database_url = (environ.get('DATABASE_URL') or '').strip()
    if not database_url.startswith(('postgres://', 'postgresql://')):
        raise RuntimeError("PostgreSQL is required. Set DATABASE_URL to a postgresql:// connection string.")

    default_department = (environ.get('DEFAULT_DEPARTMENT') or 'CT').strip().upper()
    if not is_department(default_department):
        raise RuntimeError(f"DEFAULT_DEPARTMENT '{default_department}' is not a known department code.")

    admin_username = (environ.get('ADMIN_USERNAME') or 'admin').strip()
    admin_password = environ.get('ADMIN_PASSWORD') or 'admin123'
    if not admin_username:
        raise RuntimeError("ADMIN_USERNAME cannot be blank.")

    return {
        'DATABASE_URL': database_url,
        'DEFAULT_DEPARTMENT': default_department,
        'ADMIN_USERNAME': admin_username,
        'ADMIN_PASSWORD': admin_password,
        'STUDENT_LIST_RETRY_DELAY': _env_float(environ, 'STUDENT_LIST_RETRY_DELAY', 2.0),
        'LOGIN_RETRY_DELAY': _env_float(environ, 'LOGIN_RETRY_DELAY', 2.0),
        'LOG_FILE': (environ.get('LOG_FILE') or '').strip(),
    }


def configure_logging(log_file=''):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=logging.INFO, handlers=handlers,
                        format='%(asctime)s - %(levelname)s - %(message)s')


def create_app(store=None, settings=None, sleep=None):
    """Build the API around an aggregate store.

    Without an explicit store, a PostgresStore is opened on DATABASE_URL.
    `sleep` replaces time.sleep in the retry policies.
    """
    settings = load_settings() if settings is None else settings
    configure_logging(settings.get('LOG_FILE', ''))
    validate_catalog()

    if store is None:
        from db import PostgresStore
        store = PostgresStore(settings['DATABASE_URL'])

    app = Flask(__name__)
    app.config.update(settings)
    app.json.sort_keys = False

    CORS(app, origins='*', methods=['GET', 'POST', 'OPTIONS'], allow_headers=['Content-Type'])
    Migrate(app, directory='migrations')

    policy_kwargs = {'sleep': sleep} if sleep is not None else {}
    app.extensions[EXTENSION_KEY] = {
        'store': store,
        'student_list_retry': RetryPolicy(STUDENT_LIST_RETRIES, settings['STUDENT_LIST_RETRY_DELAY'], **policy_kwargs),
        'login_retry': RetryPolicy(LOGIN_RETRIES, settings['LOGIN_RETRY_DELAY'], **policy_kwargs),
    }

    register_handlers(app)
    register_routes(app)
    return app


def _survey(name):
    return current_app.extensions[EXTENSION_KEY][name]


def _json_body():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


# ==================== ERROR HANDLERS ====================

def register_handlers(app):

    @app.before_request
    def answer_preflight():
        if request.method == 'OPTIONS':
            return '', 204
        return None

    @app.errorhandler(SurveyError)
    def survey_error(error):
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(HTTPException)
    def http_error(error):
        if error.code == 404:
            return jsonify({'error': 'Route not found'}), 404
        return jsonify({'error': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def unexpected_error(error):
        logging.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({'error': 'Internal server error'}), 500


# ==================== ROUTES ====================

def register_routes(app):

    @app.route('/api', methods=['GET'])
    def health():
        return jsonify({'message': 'Exit Survey Feedback API is running'})

    @app.route('/api/login', methods=['POST'])
    def login():
        user = survey.authenticate(
            _survey('store'),
            _json_body(),
            admin_username=current_app.config['ADMIN_USERNAME'],
            admin_password=current_app.config['ADMIN_PASSWORD'],
            default_department=current_app.config['DEFAULT_DEPARTMENT'],
            policy=_survey('login_retry'),
        )
        return jsonify({'user': user})

    @app.route('/api/students', methods=['GET'])
    def students():
        return jsonify(survey.list_students(_survey('store'), _survey('student_list_retry')))

    @app.route('/api/feedback', methods=['POST'])
    def submit_feedback():
        body = _json_body()
        survey.submit(
            _survey('store'),
            body.get('rollNo'),
            department=body.get('department'),
            answers=body.get('answers'),
        )
        return jsonify({'message': 'Feedback submitted successfully'}), 201

    @app.route('/api/feedback/<department>', methods=['GET'])
    def department_feedback(department):
        rows = survey.get_department_aggregate(
            _survey('store'), department, current_app.config['DEFAULT_DEPARTMENT'],
        )
        return jsonify(rows)

    @app.route('/api/questions', methods=['GET'])
    def questions():
        department = (request.args.get('department') or '').strip().upper()
        department = department or current_app.config['DEFAULT_DEPARTMENT']
        if not is_department(department):
            raise ValidationError(f'Unknown department: {department}')
        return jsonify({'department': department, 'sections': questions_for(department)})

    @app.route('/api/summary', methods=['GET'])
    def summary():
        students = survey.list_students(_survey('store'), _survey('student_list_retry'))
        return jsonify(survey.summarize(students, current_app.config['DEFAULT_DEPARTMENT']))

    @app.route('/api/report/<department>', methods=['GET'])
    def report(department):
        return jsonify(survey.build_report(
            _survey('store'),
            department,
            current_app.config['DEFAULT_DEPARTMENT'],
            _survey('student_list_retry'),
        ))


# ==================== MAIN ====================

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', '0').strip().lower() in ('1', 'true', 'yes')
    create_app().run(host='0.0.0.0', port=port, debug=debug)
