"""Admin routes - dashboard, moderation, prayer management, import/export, users."""
from flask import Blueprint, render_template, redirect, url_for, request, flash, Response, current_app
from flask_babel import gettext as _

from app.errors import Conflict, Forbidden, NotFound, ValidationError
from app.models import ROLE_HIERARCHY, VALID_STATUSES, PRAYER_STATUSES
from app.routes.auth import require_auth, require_admin, require_super_admin, require_permission
from app.services import prayer_service, import_service, export, reports, user_service

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/admin')
@require_auth
@require_admin
def dashboard(identity):
    pending_updates = prayer_service.get_pending_suggested_updates()
    return render_template(
        'admin/dashboard.html',
        identity=identity,
        pending_updates=pending_updates,
        category_counts=reports.category_counts(),
        user_stats=user_service.get_user_stats(),
    )


# ==================== MODERATION ====================

@admin_bp.route('/admin/updates')
@require_auth
@require_permission('approve_updates')
def pending_updates(identity):
    updates = prayer_service.get_pending_suggested_updates()
    return render_template('admin/updates.html', identity=identity, updates=updates)


@admin_bp.route('/admin/updates/<int:update_id>/approve', methods=['POST'])
@require_auth
@require_permission('approve_updates')
def approve_update(update_id, identity):
    try:
        prayer_service.approve_suggested_update(update_id, identity.id, request.form.get('admin_notes'))
        flash(_('Update approved and applied.'), 'success')
    except Conflict as error:
        flash(error.message, 'error')
    return redirect(url_for('admin.pending_updates'))


@admin_bp.route('/admin/updates/<int:update_id>/reject', methods=['POST'])
@require_auth
@require_permission('approve_updates')
def reject_update(update_id, identity):
    try:
        prayer_service.reject_suggested_update(update_id, identity.id, request.form.get('admin_notes'))
        flash(_('Update rejected.'), 'info')
    except Conflict as error:
        flash(error.message, 'error')
    return redirect(url_for('admin.pending_updates'))


# ==================== PRAYER MANAGEMENT ====================

@admin_bp.route('/admin/prayers/<int:prayer_id>/status', methods=['POST'])
@require_auth
@require_permission('manage_prayers')
def update_prayer_status(prayer_id, identity):
    try:
        prayer_service.update_prayer_status(prayer_id, request.form.get('status'))
        flash(_('Status updated.'), 'success')
    except ValidationError as error:
        flash(error.message, 'error')
    return redirect(url_for('prayers.detail', prayer_id=prayer_id))


@admin_bp.route('/admin/prayers/<int:prayer_id>/edit', methods=['GET', 'POST'])
@require_auth
@require_permission('manage_prayers')
def edit_prayer(prayer_id, identity):
    prayer = prayer_service.get_prayer_request_by_id(prayer_id)
    if request.method == 'POST':
        form = request.form.to_dict()
        form.setdefault('is_private', '')
        try:
            prayer_service.update_prayer_request(prayer_id, form)
        except ValidationError as error:
            flash(error.message, 'error')
            return render_template('admin/edit_prayer.html', identity=identity, prayer=prayer,
                                   categories=prayer_service.categories()), 400
        flash(_('Prayer request updated.'), 'success')
        return redirect(url_for('prayers.detail', prayer_id=prayer_id))

    return render_template('admin/edit_prayer.html', identity=identity, prayer=prayer,
                           categories=prayer_service.categories())


@admin_bp.route('/admin/prayers/<int:prayer_id>/delete', methods=['POST'])
@require_auth
@require_permission('manage_prayers')
def delete_prayer(prayer_id, identity):
    prayer_service.delete_prayer_request(prayer_id)
    flash(_('Prayer request deleted.'), 'success')
    return redirect(url_for('main.index'))


# ==================== IMPORT / EXPORT / REPORTS ====================

@admin_bp.route('/admin/import', methods=['GET', 'POST'])
@require_auth
@require_permission('import_prayers')
def import_prayers(identity):
    if request.method == 'POST':
        file = request.files.get('file')
        if not file or not file.filename:
            flash(_('Please choose a CSV file.'), 'error')
            return redirect(url_for('admin.import_prayers'))

        try:
            result = import_service.import_csv(file.read(), identity.id, filename=file.filename)
        except UnicodeDecodeError:
            flash(_('The file must be UTF-8 encoded CSV.'), 'error')
            return redirect(url_for('admin.import_prayers'))

        flash(_('Import finished: %(success)d imported, %(failed)d failed.',
                success=result.success_count, failed=result.failed_count),
              'success' if not result.failed_count else 'warning')
        for message in result.errors[:current_app.config['IMPORT_ERROR_LOG_LIMIT']]:
            flash(message, 'error')
        return redirect(url_for('admin.import_prayers'))

    return render_template('admin/import.html', identity=identity,
                           logs=import_service.get_import_logs())


@admin_bp.route('/admin/export.csv')
@require_auth
@require_permission('export_prayers')
def export_csv(identity):
    return Response(
        export.export_to_csv(),
        mimetype='text/csv',
        headers={'Content-disposition': 'attachment; filename=prayer_requests.csv'}
    )


@admin_bp.route('/admin/export/print')
@require_auth
@require_permission('export_prayers')
def export_print(identity):
    return render_template('admin/print.html', rows=export.export_prayers())


@admin_bp.route('/admin/reports')
@require_auth
@require_permission('view_reports')
def reports_page(identity):
    return render_template(
        'admin/reports.html',
        identity=identity,
        category_counts=reports.category_counts(),
        recent=reports.recent_activity(),
        stale=reports.stale_requests(),
        user_stats=user_service.get_user_stats(),
        prayer_statuses=PRAYER_STATUSES,
    )


# ==================== USER MANAGEMENT ====================

@admin_bp.route('/admin/users')
@require_auth
@require_super_admin
def users_list(identity):
    """List all users for super admin management."""
    page = max(request.args.get('page', 1, type=int), 1)
    users = user_service.list_users(limit=50, offset=(page - 1) * 50)
    return render_template('users/list.html', identity=identity, users=users, page=page,
                           valid_roles=ROLE_HIERARCHY, valid_statuses=VALID_STATUSES)


@admin_bp.route('/admin/users/create', methods=['POST'])
@require_auth
@require_super_admin
def create_user(identity):
    """Create a new user from the admin panel."""
    try:
        user = user_service.create_user(request.form, created_by=identity.id)
    except (ValidationError, Conflict) as error:
        flash(error.message, 'error')
        return redirect(url_for('admin.users_list'))
    flash(_('User %(username)s created with role %(role)s.', username=user.username, role=user.role), 'success')
    return redirect(url_for('admin.users_list'))


@admin_bp.route('/admin/users/<int:user_id>/role', methods=['POST'])
@require_auth
@require_super_admin
def update_user_role(user_id, identity):
    """Update a user's role."""
    try:
        user_service.change_user_role(user_id, request.form.get('role'), identity.id)
    except (ValidationError, Forbidden, NotFound) as error:
        flash(error.message, 'error')
        return redirect(url_for('admin.users_list'))
    flash(_('Role updated.'), 'success')
    return redirect(url_for('admin.users_list'))


@admin_bp.route('/admin/users/<int:user_id>/status', methods=['POST'])
@require_auth
@require_super_admin
def update_user_status(user_id, identity):
    """Deactivate, suspend or reactivate a user."""
    try:
        user_service.set_user_status(user_id, request.form.get('status'), identity.id)
    except (ValidationError, Forbidden, NotFound) as error:
        flash(error.message, 'error')
        return redirect(url_for('admin.users_list'))
    flash(_('Status updated.'), 'success')
    return redirect(url_for('admin.users_list'))
