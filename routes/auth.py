# routes/auth.py
# Access-code login and the role check used by every other blueprint

from datetime import datetime
from functools import wraps

from flask import Blueprint, g, session

from errors import AuthError, ForbiddenError
from extensions import db
from models import Role, User
from routes import api_response, json_body

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def current_user():
    user_id = session.get('user_id')
    if not user_id:
        return None
    user = g.get('user')
    if user is None or user.id != user_id:
        user = g.user = db.session.get(User, user_id)
    return user


def role_required(*roles):
    """Rejects the request unless the session user is active and holds one of ``roles``."""
    allowed = {Role(r).value for r in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = current_user()
            if user is None or not user.is_active:
                session.clear()
                raise AuthError()
            if allowed and user.role not in allowed:
                raise ForbiddenError('You do not have permission to access this resource')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


login_required = role_required()
admin_required = role_required(Role.ADMIN)
judge_required = role_required(Role.JUDGE)


@auth_bp.route('/login', methods=['POST'])
def login():
    code = json_body().get('code')
    if not code:
        raise AuthError('Please enter your access code')

    user = User.query.filter_by(code=code).first()
    if user is None or not user.is_active:
        raise AuthError('Invalid access code')

    # Start from a clean session
    session.clear()
    session['user_id'] = user.id
    session['user_role'] = user.role
    user.last_login = datetime.utcnow()
    db.session.commit()
    return api_response({'user': user.to_dict()}, 'Login successful')


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return api_response(message='Logged out')


@auth_bp.route('/me')
@login_required
def me():
    return api_response({'user': current_user().to_dict()})
