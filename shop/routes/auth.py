from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, current_user, login_required

from shop.extensions import login_manager
from shop.forms.forms import LoginForm
from shop.models.user import User
from shop.routes import json_formdata
from shop.services.audit import log_event

auth = Blueprint('auth', __name__)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'success': False, 'error': 'unauthorized', 'message': 'Please log in.'}), 401


@auth.route('/login', methods=['POST'])
def login():
    form = LoginForm(formdata=json_formdata())
    if not form.validate():
        return jsonify({'success': False, 'error': 'validation', 'message': form.first_error()}), 400

    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if user and user.is_active and user.check_password(form.password.data):
        login_user(user, remember=form.remember.data)
        log_event('Agent login', 'SUCCESS', {'email': user.email}, user_id=user.id, ip_address=request.remote_addr)
        return jsonify({'success': True, 'user': {'id': user.id, 'name': user.name, 'role': user.role}})

    log_event('Agent login', 'FAILURE', {'email': form.email.data}, ip_address=request.remote_addr)
    return jsonify({'success': False, 'error': 'unauthorized', 'message': 'Invalid email or password.'}), 401


@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@auth.route('/me')
@login_required
def me():
    return jsonify({'id': current_user.id, 'name': current_user.name, 'email': current_user.email, 'role': current_user.role})
