from flask import Flask, render_template, request, redirect, url_for, flash, jsonify, send_file, session
from flask_login import LoginManager, login_user, login_required, logout_user, current_user
from database import init_db
from models import User, Class, Student, Result, AccessLog, filter_students
from auth import LoginUser, StudentSession
from excel_utils import ResultImporter
import sqlite3
import logging
import os

logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO'))
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max file size
app.config['ACADEMIC_YEAR'] = os.getenv('ACADEMIC_YEAR', '2024-25')

# Initialize Flask-Login
login_manager = LoginManager()
login_manager.init_app(app)
login_manager.login_view = 'admin_login'
login_manager.login_message_category = 'info'

INVALID_LOOKUP_MESSAGE = 'Invalid admission number or class'
SQLITE_MAX_INTEGER = 2 ** 63 - 1


def class_id_from_form():
    """The posted class id, or None when it is missing, not a number or out of range."""
    class_id = request.form.get('class_id', type=int)
    if class_id is None or not 0 < class_id <= SQLITE_MAX_INTEGER:
        return None
    return class_id


@login_manager.user_loader
def load_user(user_id):
    return LoginUser.get(user_id)


# Initialize database
init_db()


@app.errorhandler(sqlite3.Error)
def handle_database_error(error):
    logger.exception("Database error on %s %s", request.method, request.path)
    if request.method != 'POST':
        return render_template('error.html', message='An error occurred. Please try again.'), 503

    flash('An error occurred. Please try again.', 'danger')
    if request.path.startswith('/admin') and current_user.is_authenticated:
        return redirect(url_for('admin_dashboard'))
    return redirect(url_for('index'))


# Student Routes
@app.route('/', methods=['GET', 'POST'])
def index():
    if request.method == 'POST':
        class_id = class_id_from_form()
        admission_no = request.form.get('admission_no', '').strip()

        if not request.form.get('class_id', '').strip() or not admission_no:
            flash('Please select your class and enter your admission number', 'danger')
            return redirect(url_for('index'))

        student = None
        if class_id is not None:
            student = Student.lookup(class_id, admission_no)

        if not student:
            logger.info("Failed result lookup for class %s", class_id)
            flash(INVALID_LOOKUP_MESSAGE, 'danger')
            return redirect(url_for('index'))

        AccessLog.record(student['id'])
        StudentSession(student['id'], student['name']).save(session)
        return redirect(url_for('student_results'))

    classes = Class.get_all_classes()
    return render_template('student_login.html', classes=classes)


@app.route('/results')
def student_results():
    student_session = StudentSession.from_session(session)
    if not student_session:
        return redirect(url_for('index'))

    card = Result.get_result_card(student_session.student_id)
    if not card:
        StudentSession.clear(session)
        flash('Failed to load results', 'danger')
        return redirect(url_for('index'))

    return render_template('student_results.html',
                           card=card,
                           academic_year=app.config['ACADEMIC_YEAR'])


@app.route('/results/back')
def leave_results():
    StudentSession.clear(session)
    return redirect(url_for('index'))


# Admin Routes
@app.route('/admin', methods=['GET', 'POST'])
def admin_login():
    if current_user.is_authenticated and current_user.role == 'admin':
        return redirect(url_for('admin_dashboard'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')

        user = User.get_by_email(email)

        if user and user.role == 'admin' and user.verify_password(password):
            login_user(LoginUser.from_user(user))
            logger.info("Administrator %s signed in", user.email)
            return redirect(url_for('admin_dashboard'))

        logger.warning("Failed administrator sign-in for %s", email)
        flash('Invalid credentials', 'danger')

    return render_template('admin_login.html')


@app.route('/admin/logout')
@login_required
def admin_logout():
    logout_user()
    flash('You have been logged out.', 'info')
    return redirect(url_for('admin_login'))


@app.route('/admin/dashboard')
@login_required
def admin_dashboard():
    if current_user.role != 'admin':
        flash('Access denied!', 'danger')
        return redirect(url_for('index'))

    query = request.args.get('q', '')
    classes = Class.get_all_classes()
    students = filter_students(Student.get_all_with_results(), query)

    return render_template('admin_dashboard.html',
                           classes=classes,
                           students=students,
                           query=query)


@app.route('/admin/add_class', methods=['POST'])
@login_required
def add_class():
    if current_user.role != 'admin':
        flash('Access denied!', 'danger')
        return redirect(url_for('index'))

    class_id, message = Class.create_class(request.form.get('name', ''))
    if class_id:
        flash(message, 'success')
    else:
        flash(message, 'danger')
    return redirect(url_for('admin_dashboard'))


@app.route('/admin/delete_class/<int:class_id>', methods=['POST'])
@login_required
def delete_class(class_id):
    if current_user.role != 'admin':
        flash('Access denied!', 'danger')
        return redirect(url_for('index'))

    if request.form.get('confirm') != 'yes':
        flash('Please confirm deleting the class. This removes all of its students and results.', 'warning')
        return redirect(url_for('admin_dashboard'))

    success, message = Class.delete_class(class_id)
    if success:
        logger.info("Class %s deleted by %s", class_id, current_user.email)
        flash(message, 'success')
    else:
        flash(message, 'danger')
    return redirect(url_for('admin_dashboard'))


@app.route('/admin/upload_results', methods=['POST'])
@login_required
def upload_results():
    if current_user.role != 'admin':
        flash('Access denied!', 'danger')
        return redirect(url_for('index'))

    class_id = class_id_from_form()
    if class_id is None:
        flash('Please select a class first', 'danger')
        return redirect(url_for('admin_dashboard'))

    class_data = Class.get_class_by_id(class_id)
    if not class_data:
        flash('Class not found!', 'danger')
        return redirect(url_for('admin_dashboard'))

    if 'file' not in request.files:
        flash('No file selected', 'danger')
        return redirect(url_for('admin_dashboard'))

    file = request.files['file']
    if file.filename == '':
        flash('No file selected', 'danger')
        return redirect(url_for('admin_dashboard'))

    if not file.filename.lower().endswith('.xlsx'):
        flash('Please upload an Excel file (.xlsx)', 'danger')
        return redirect(url_for('admin_dashboard'))

    outcome = ResultImporter.import_results(class_data['id'], file.stream)
    flash(outcome.message(), 'success' if outcome.ok else 'danger')
    return redirect(url_for('admin_dashboard'))


@app.route('/admin/download_template')
@login_required
def download_template():
    if current_user.role != 'admin':
        flash('Access denied!', 'danger')
        return redirect(url_for('index'))

    file_data, filename = ResultImporter.download_template()
    return send_file(
        file_data,
        download_name=filename,
        as_attachment=True,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )


@app.route('/admin/search_students', methods=['POST'])
@login_required
def search_students():
    if current_user.role != 'admin':
        return jsonify({'success': False, 'message': 'Access denied!'})

    query = request.form.get('query', '')
    students = filter_students(Student.get_all_with_results(), query)

    return jsonify({'success': True, 'students': students})


if __name__ == '__main__':
    app.run(debug=True)
