"""
Support Ticket API Routes.

User endpoints:
- GET /api/support/tickets - List the company's tickets
- POST /api/support/tickets - Create a ticket
- GET /api/support/tickets/<id> - Ticket with its public responses
- POST /api/support/tickets/<id>/responses - Reply to a ticket

Super admin endpoints:
- GET /api/support/admin/tickets - List all tickets
- PUT /api/support/admin/tickets/<id>/assign - Assign ticket
- PUT /api/support/admin/tickets/<id>/status - Update status
- POST /api/support/admin/tickets/<id>/notes - Internal note
- GET /api/support/admin/stats - Support statistics
"""

import logging
import threading

from flask import current_app, request, jsonify, g

from rankitpro.support import support_bp
from rankitpro.email.email_service import EmailServiceSingleton
from rankitpro.middleware.auth import require_auth, require_super_admin, forbidden
from rankitpro.models.support_ticket import SupportTicket, SupportTicketResponse
from rankitpro.service.support_service import SupportServiceSingleton
from rankitpro.service.user_service import UserServiceSingleton
from rankitpro.utils.constants import Roles
from rankitpro.utils.validators import ValidationError, require_choice, require_fields

logger = logging.getLogger(__name__)


def _send_ticket_notification(app, ticket: SupportTicket):
    """Email every super admin about a new ticket (runs in background thread)."""
    with app.app_context():
        try:
            email_service = EmailServiceSingleton.get_instance()
            for admin in UserServiceSingleton.get_instance().get_all(role=Roles.SUPER_ADMIN):
                if admin.active and admin.email:
                    email_service.send_ticket_created_email(
                        admin.email, ticket.ticket_number, ticket.subject, ticket.priority
                    )
        except Exception as e:
            logger.error(f"Error in ticket notification: {e}")


def _notify_submitter(ticket: SupportTicket, note=None):
    try:
        submitter = UserServiceSingleton.get_instance().get_by_id(ticket.submitter_id)
        if submitter and submitter.email:
            EmailServiceSingleton.get_instance().send_ticket_update_email(
                submitter.email, ticket.ticket_number, ticket.subject, ticket.status, note
            )
    except Exception as e:
        logger.error(f"Failed to notify submitter of ticket {ticket.id}: {e}")


def _can_view(ticket: SupportTicket) -> bool:
    if g.user.is_super_admin or ticket.submitter_id == g.user.id:
        return True
    return ticket.company_id is not None and ticket.company_id == g.user.company_id


# =============================================================================
# User Ticket Endpoints
# =============================================================================

@support_bp.route('/tickets', methods=['GET'])
@require_auth
def list_tickets():
    service = SupportServiceSingleton.get_instance()
    status = request.args.get('status')
    try:
        if g.user.company_id:
            tickets = service.list(company_id=g.user.company_id, status=status)
        else:
            tickets = service.list(submitter_id=g.user.id, status=status)
        return jsonify([t.to_dict() for t in tickets])
    except Exception as e:
        logger.error(f"Error listing tickets: {e}")
        return jsonify({"error": str(e)}), 500


@support_bp.route('/tickets', methods=['POST'])
@require_auth
def create_ticket():
    data = request.get_json(silent=True) or {}
    priority = data.get('priority') or 'medium'
    category = data.get('category') or 'general'

    try:
        require_fields(data, ['subject', 'description'], "Subject and description are required")
        require_choice(priority, SupportTicket.PRIORITIES, 'priority')
        require_choice(category, SupportTicket.CATEGORIES, 'category')
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        ticket = SupportTicket()
        ticket.company_id = g.user.company_id
        ticket.submitter_id = g.user.id
        ticket.subject = data['subject'].strip()
        ticket.description = data['description'].strip()
        ticket.priority = priority
        ticket.category = category
        ticket = SupportServiceSingleton.get_instance().create(ticket)
    except Exception as e:
        logger.error(f"Error creating ticket: {e}")
        return jsonify({"error": str(e)}), 500

    thread = threading.Thread(
        target=_send_ticket_notification,
        args=(current_app._get_current_object(), ticket),
        daemon=True,
    )
    thread.start()

    return jsonify(ticket.to_dict()), 201


@support_bp.route('/tickets/<int:ticket_id>', methods=['GET'])
@require_auth
def get_ticket(ticket_id):
    service = SupportServiceSingleton.get_instance()
    ticket = service.get_by_id(ticket_id)
    if not ticket:
        return jsonify({"error": "Ticket not found"}), 404
    if not _can_view(ticket):
        return forbidden()

    responses = service.get_responses(ticket_id, include_internal=g.user.is_super_admin)
    return jsonify({
        'ticket': ticket.to_dict(),
        'responses': [r.to_dict() for r in responses],
    })


@support_bp.route('/tickets/<int:ticket_id>/responses', methods=['POST'])
@require_auth
def add_response(ticket_id):
    service = SupportServiceSingleton.get_instance()
    ticket = service.get_by_id(ticket_id)
    if not ticket:
        return jsonify({"error": "Ticket not found"}), 404
    if not _can_view(ticket):
        return forbidden()

    message = ((request.get_json(silent=True) or {}).get('message') or '').strip()
    if not message:
        return jsonify({"error": "Message is required"}), 400

    response = SupportTicketResponse()
    response.ticket_id = ticket.id
    response.responder_id = g.user.id
    response.responder_name = g.user.username
    response.responder_type = 'admin' if g.user.is_super_admin else 'customer'
    response.message = message
    response = service.add_response(response)

    if g.user.is_super_admin and ticket.submitter_id != g.user.id:
        _notify_submitter(ticket, message)
    elif not g.user.is_super_admin and ticket.status == 'waiting':
        service.set_status(ticket.id, 'open')

    return jsonify(response.to_dict()), 201


# =============================================================================
# Admin Ticket Endpoints
# =============================================================================

@support_bp.route('/admin/tickets', methods=['GET'])
@require_super_admin
def admin_list_tickets():
    try:
        tickets = SupportServiceSingleton.get_instance().list(
            status=request.args.get('status'),
            priority=request.args.get('priority'),
            assigned_to_id=request.args.get('assigned_to', type=int),
            company_id=request.args.get('company_id', type=int),
        )
        return jsonify([t.to_dict() for t in tickets])
    except Exception as e:
        logger.error(f"Error listing admin tickets: {e}")
        return jsonify({"error": str(e)}), 500


@support_bp.route('/admin/tickets/<int:ticket_id>/assign', methods=['PUT'])
@require_super_admin
def assign_ticket(ticket_id):
    assigned_to = (request.get_json(silent=True) or {}).get('assignedTo')
    if not assigned_to:
        return jsonify({"error": "assignedTo is required"}), 400

    assignee = UserServiceSingleton.get_instance().get_by_id(assigned_to)
    if not assignee or assignee.role != Roles.SUPER_ADMIN:
        return jsonify({"error": "Assignee must be a super admin"}), 400

    service = SupportServiceSingleton.get_instance()
    if not service.get_by_id(ticket_id):
        return jsonify({"error": "Ticket not found"}), 404

    ticket = service.update(ticket_id, {'assigned_to_id': assignee.id, 'status': 'in_progress'})
    logger.info(f"Ticket {ticket_id} assigned to {assignee.id} by {g.user.id}")
    return jsonify(ticket.to_dict())


@support_bp.route('/admin/tickets/<int:ticket_id>/status', methods=['PUT'])
@require_super_admin
def update_ticket_status(ticket_id):
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    try:
        require_choice(status, SupportTicket.STATUSES, 'status')
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    service = SupportServiceSingleton.get_instance()
    if not service.get_by_id(ticket_id):
        return jsonify({"error": "Ticket not found"}), 404

    ticket = service.set_status(ticket_id, status, data.get('resolution'))
    _notify_submitter(ticket, data.get('resolution'))
    logger.info(f"Ticket {ticket_id} status updated to {status} by {g.user.id}")
    return jsonify(ticket.to_dict())


@support_bp.route('/admin/tickets/<int:ticket_id>/notes', methods=['POST'])
@require_super_admin
def add_internal_note(ticket_id):
    service = SupportServiceSingleton.get_instance()
    if not service.get_by_id(ticket_id):
        return jsonify({"error": "Ticket not found"}), 404

    message = ((request.get_json(silent=True) or {}).get('message') or '').strip()
    if not message:
        return jsonify({"error": "Message is required"}), 400

    note = SupportTicketResponse()
    note.ticket_id = ticket_id
    note.responder_id = g.user.id
    note.responder_name = g.user.username
    note.responder_type = 'admin'
    note.message = message
    note.is_internal = True
    return jsonify(service.add_response(note).to_dict()), 201


@support_bp.route('/admin/stats', methods=['GET'])
@require_super_admin
def get_support_stats():
    try:
        return jsonify(SupportServiceSingleton.get_instance().get_stats())
    except Exception as e:
        logger.error(f"Error getting support stats: {e}")
        return jsonify({"error": str(e)}), 500
