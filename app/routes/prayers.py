"""Prayer routes - member submissions, detail view, suggesting updates."""
from flask import Blueprint, render_template, request, redirect, url_for, flash, jsonify
from flask_babel import gettext as _

from app.errors import ValidationError
from app.routes.auth import require_auth, require_permission, optional_identity
from app.services import prayer_service

prayers_bp = Blueprint('prayers', __name__)


@prayers_bp.route('/prayers', methods=['POST'])
@require_auth
@require_permission('create_prayer')
def create(identity):
    try:
        prayer_id = prayer_service.create_prayer_request(request.form, submitter_id=identity.id)
    except ValidationError as error:
        flash(error.message, 'error')
        return redirect(url_for('main.index'))
    flash(_('Prayer request submitted.'), 'success')
    return redirect(url_for('prayers.detail', prayer_id=prayer_id))


@prayers_bp.route('/prayers/<int:prayer_id>')
@optional_identity
def detail(prayer_id, identity):
    prayer = prayer_service.get_prayer_request_by_id(
        prayer_id, viewer_is_authenticated=identity is not None
    )
    approved_updates = prayer_service.get_approved_updates_for_prayer(prayer_id)
    history = []
    if identity is not None and identity.can('approve_updates'):
        history = prayer_service.get_suggested_updates_for_prayer(prayer_id)
    return render_template('prayers/detail.html', prayer=prayer, identity=identity,
                           approved_updates=approved_updates, history=history)


@prayers_bp.route('/prayers/<int:prayer_id>/suggest', methods=['POST'])
@require_auth
@require_permission('suggest_updates')
def suggest(prayer_id, identity):
    """Accepts a form post or a JSON body with ``suggested_content``."""
    payload = request.get_json(silent=True) if request.is_json else request.form
    content = (payload or {}).get('suggested_content')
    try:
        update_id = prayer_service.create_suggested_update(prayer_id, content, identity.id)
    except ValidationError as error:
        if request.is_json:
            return jsonify({'success': False, 'error': error.message, 'field': error.field}), 400
        flash(error.message, 'error')
        return redirect(url_for('prayers.detail', prayer_id=prayer_id))

    if request.is_json:
        return jsonify({'success': True, 'id': update_id}), 201
    flash(_('Update suggestion submitted. An admin will review it shortly.'), 'info')
    return redirect(url_for('prayers.detail', prayer_id=prayer_id))
