"""
Email Templates - HTML bodies for ticket notifications

Every template takes the outbox payload and the frontend base URL and
returns a dict with 'subject' and 'body'.
"""
from html import escape
from typing import Any, Callable, Dict, Optional

from ..domain.enums import NotificationTemplateKey


# =============================================================================
# Base Template Wrapper
# =============================================================================

def get_base_template(
    content: str,
    action_button_text: Optional[str] = None,
    action_button_url: Optional[str] = None,
    accent_color: str = "#3B82F6"
) -> str:
    """Table-based layout that renders in Outlook, Gmail and Apple Mail"""
    button_html = ""
    if action_button_text and action_button_url:
        button_html = f'''
        <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="margin: 32px 0;">
            <tr>
                <td align="center">
                    <a href="{escape(action_button_url, quote=True)}"
                       style="display: inline-block; background-color: {accent_color}; color: #ffffff;
                              text-decoration: none; padding: 14px 32px; border-radius: 8px;
                              font-weight: 600; font-size: 14px; font-family: Arial, sans-serif;">
                        {escape(action_button_text)}
                    </a>
                </td>
            </tr>
        </table>
        '''

    return f'''
<!DOCTYPE html>
<html>
<head>
    <meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Ticket Workflow</title>
</head>
<body style="margin: 0; padding: 0; background-color: #F8FAFC; font-family: Arial, Helvetica, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: #F8FAFC;">
        <tr>
            <td style="padding: 32px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" align="center"
                       style="margin: 0 auto; max-width: 600px; background-color: #ffffff; border-radius: 8px;">
                    <tr>
                        <td style="height: 4px; background-color: {accent_color}; border-radius: 8px 8px 0 0;"></td>
                    </tr>
                    <tr>
                        <td style="padding: 32px 40px 40px 40px;">
                            {content}
                            {button_html}
                        </td>
                    </tr>
                </table>
                <p style="margin: 24px 0 0 0; text-align: center; color: #9CA3AF; font-size: 11px;">
                    This is an automated message from the ticket workflow service.
                </p>
            </td>
        </tr>
    </table>
</body>
</html>
'''


# =============================================================================
# Info Card Component
# =============================================================================

def get_info_card(ticket_number: str, functionality_name: str, additional_fields: Optional[Dict[str, str]] = None) -> str:
    """Ticket details table"""
    rows = {"Ticket": ticket_number, "Type": functionality_name}
    rows.update(additional_fields or {})

    fields_html = "".join(
        f'''
        <tr>
            <td style="padding: 8px 16px; color: #6B7280; font-size: 13px; border-bottom: 1px solid #E5E7EB; width: 120px;">{escape(label)}</td>
            <td style="padding: 8px 16px; color: #111827; font-size: 13px; font-weight: bold; border-bottom: 1px solid #E5E7EB;">{escape(str(value))}</td>
        </tr>
        '''
        for label, value in rows.items()
        if value
    )

    return f'''
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%"
           style="margin: 24px 0; border: 1px solid #E5E7EB; background-color: #F9FAFB;">
        {fields_html}
    </table>
    '''


def _heading(title: str, subtitle: str) -> str:
    return f'''
    <h1 style="margin: 0 0 8px 0; font-size: 22px; font-weight: bold; color: #111827;">{escape(title)}</h1>
    <p style="margin: 0 0 16px 0; color: #6B7280; font-size: 15px;">{escape(subtitle)}</p>
    '''


def _quote(text: Optional[str]) -> str:
    if not text:
        return ""
    return f'''
    <p style="margin: 16px 0; padding: 12px 16px; border-left: 3px solid #D1D5DB; color: #374151; font-size: 14px;">
        {escape(text)}
    </p>
    '''


def _ticket_url(payload: Dict[str, Any], app_url: str) -> str:
    return f"{app_url}/tickets/{payload.get('ticket_id', '')}"


# =============================================================================
# Individual Templates
# =============================================================================

def get_ticket_assigned_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: Ticket Assigned - new ticket lands at its first node"""
    ticket_number = payload.get("ticket_number", "")
    content = (
        _heading("New Ticket Assigned", f"Raised by {payload.get('raised_by_name', 'a colleague')}")
        + get_info_card(ticket_number, payload.get("functionality_name", ""), {"Priority": payload.get("priority", "")})
    )
    return {
        "subject": f"New ticket assigned: {ticket_number}",
        "body": get_base_template(content, "Open Ticket", _ticket_url(payload, app_url)),
    }


def get_ticket_forwarded_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: Ticket Forwarded - to the new holder(s)"""
    ticket_number = payload.get("ticket_number", "")
    content = (
        _heading("Ticket Forwarded to You", f"{payload.get('actor_name', 'Someone')} forwarded this ticket")
        + get_info_card(ticket_number, payload.get("functionality_name", ""), {"Stage": payload.get("to_node_label", "")})
        + _quote(payload.get("explanation"))
    )
    return {
        "subject": f"Ticket forwarded: {ticket_number}",
        "body": get_base_template(content, "Open Ticket", _ticket_url(payload, app_url)),
    }


def get_ticket_reassigned_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: Ticket Reassigned - to the new assignee(s)"""
    ticket_number = payload.get("ticket_number", "")
    content = (
        _heading("Ticket Reassigned to You", f"{payload.get('actor_name', 'Someone')} reassigned this ticket")
        + get_info_card(ticket_number, payload.get("functionality_name", ""))
        + _quote(payload.get("explanation"))
    )
    return {
        "subject": f"Ticket reassigned: {ticket_number}",
        "body": get_base_template(content, "Open Ticket", _ticket_url(payload, app_url), accent_color="#8B5CF6"),
    }


def get_group_formed_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: Group Formed - to every group member"""
    ticket_number = payload.get("ticket_number", "")
    members = ", ".join(payload.get("member_names", []))
    content = (
        _heading("You Were Added to a Group", f"{payload.get('actor_name', 'Someone')} formed a group on this ticket")
        + get_info_card(
            ticket_number,
            payload.get("functionality_name", ""),
            {"Group lead": payload.get("group_lead_name", ""), "Members": members}
        )
    )
    return {
        "subject": f"Group formed on ticket {ticket_number}",
        "body": get_base_template(content, "Open Ticket", _ticket_url(payload, app_url), accent_color="#0EA5E9"),
    }


def get_ticket_reverted_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: Ticket Reverted - back to the previous holder(s)"""
    ticket_number = payload.get("ticket_number", "")
    content = (
        _heading("Ticket Sent Back to You", f"{payload.get('actor_name', 'Someone')} reverted this ticket")
        + get_info_card(ticket_number, payload.get("functionality_name", ""), {"Stage": payload.get("to_node_label", "")})
        + _quote(payload.get("explanation"))
    )
    return {
        "subject": f"Ticket reverted: {ticket_number}",
        "body": get_base_template(content, "Open Ticket", _ticket_url(payload, app_url), accent_color="#F59E0B"),
    }


def get_ticket_resolved_template(payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """Template: Ticket Resolved - to the requester"""
    ticket_number = payload.get("ticket_number", "")
    content = (
        _heading("Your Ticket Has Been Resolved", f"Resolved by {payload.get('actor_name', 'the team')}")
        + get_info_card(ticket_number, payload.get("functionality_name", ""))
    )
    return {
        "subject": f"Ticket resolved: {ticket_number}",
        "body": get_base_template(content, "View Ticket", _ticket_url(payload, app_url), accent_color="#10B981"),
    }


TEMPLATE_REGISTRY: Dict[NotificationTemplateKey, Callable[[Dict[str, Any], str], Dict[str, str]]] = {
    NotificationTemplateKey.TICKET_ASSIGNED: get_ticket_assigned_template,
    NotificationTemplateKey.TICKET_FORWARDED: get_ticket_forwarded_template,
    NotificationTemplateKey.TICKET_REASSIGNED: get_ticket_reassigned_template,
    NotificationTemplateKey.GROUP_FORMED: get_group_formed_template,
    NotificationTemplateKey.TICKET_REVERTED: get_ticket_reverted_template,
    NotificationTemplateKey.TICKET_RESOLVED: get_ticket_resolved_template,
}


def get_email_template(template_key: str, payload: Dict[str, Any], app_url: str = "") -> Dict[str, str]:
    """
    Get rendered email template by key

    Unknown keys fall back to a generic update message.
    """
    try:
        return TEMPLATE_REGISTRY[NotificationTemplateKey(template_key)](payload, app_url)
    except (ValueError, KeyError):
        pass

    return {
        "subject": f"[Notification] {payload.get('ticket_number', 'Update')}",
        "body": get_base_template(
            content="<p>There is a new update on a ticket you are involved in.</p>",
            action_button_text="View Details",
            action_button_url=_ticket_url(payload, app_url)
        ),
    }
