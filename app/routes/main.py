"""Main routes - prayer listing, public display, guest submissions, language switching."""
from flask import Blueprint, render_template, request, redirect, make_response, url_for, flash, current_app

from app.errors import ValidationError
from app.routes.auth import optional_identity
from app.services import prayer_service

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
@optional_identity
def index(identity):
    selected_category = request.args.get('category', 'all')
    prayers = prayer_service.list_prayer_requests(
        viewer_is_authenticated=identity is not None,
        category=selected_category,
    )
    return render_template(
        'prayers/list.html',
        identity=identity,
        prayers=prayers,
        categories=prayer_service.categories(),
        selected_category=selected_category,
    )


@main_bp.route('/display')
def display():
    """Public display board: public requests only, even for members."""
    prayers = prayer_service.list_prayer_requests(viewer_is_authenticated=False)
    return render_template('prayers/display.html', prayers=prayers,
                           submitted=request.args.get('submitted') == 'success')


@main_bp.route('/request-prayer', methods=['GET', 'POST'])
def request_prayer():
    """Guest submission form. Requests created here are always public."""
    if request.method == 'POST':
        try:
            prayer_service.create_prayer_request(request.form, submitter_id=None)
        except ValidationError as error:
            flash(error.message, 'error')
            return render_template('prayers/request.html', categories=prayer_service.categories(),
                                   form=request.form), 400
        return redirect(url_for('main.display', submitted='success'))

    return render_template('prayers/request.html', categories=prayer_service.categories(), form={})


@main_bp.route('/set_language/<lang>')
def set_language(lang):
    if lang not in current_app.config['LANGUAGES']:
        lang = current_app.config['BABEL_DEFAULT_LOCALE']
    resp = make_response(redirect(request.referrer or '/'))
    resp.set_cookie('babel_translation', lang)
    return resp
