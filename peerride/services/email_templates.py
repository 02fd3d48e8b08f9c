"""HTML bodies for the queued notification emails."""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape
from typing import Optional

from peerride.domain.entities import Luggage
from peerride.domain.enums import ContactMethod


def format_window(start: Optional[datetime], end: Optional[datetime]) -> str:
    def _fmt(value: Optional[datetime]) -> str:
        if value is None:
            return ""
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime("%b %d, %Y %H:%M UTC")

    return f"{_fmt(start)} – {_fmt(end)}"


def route_label(origin: str, destination: str) -> str:
    return f"{origin} → {destination}"


def _contact_line(method: ContactMethod, value: Optional[str], trip_url: str) -> str:
    if ContactMethod(method) == ContactMethod.CHAT or not value:
        return f'Reach out through the <a href="{escape(trip_url)}">trip chat</a>.'
    return f"Contact via {escape(ContactMethod(method).value)}: <strong>{escape(value)}</strong>"


def new_request_email(
    *,
    host_nickname: str,
    requester_name: str,
    route: str,
    window: str,
    pending_count: int,
    trip_url: str,
) -> tuple[str, str]:
    subject = f"New pairing request for your trip {route}"
    html = f"""
<p>Hi {escape(host_nickname)},</p>
<p><strong>{escape(requester_name)}</strong> just sent a pairing request.</p>
<ul>
  <li>Route: {escape(route)}</li>
  <li>Window: {escape(window)}</li>
  <li>Pending requests awaiting action: {pending_count}</li>
</ul>
<p><a href="{escape(trip_url)}">Open trip requests</a></p>
"""
    return subject, html


def accepted_for_requester_email(
    *,
    requester_name: str,
    host_nickname: str,
    route: str,
    window: str,
    host_contact_method: ContactMethod,
    host_contact_value: Optional[str],
    trip_url: str,
) -> tuple[str, str]:
    subject = f"Your pairing request for {route} was accepted"
    html = f"""
<p>Hi {escape(requester_name)},</p>
<p><strong>{escape(host_nickname)}</strong> accepted your pairing request.</p>
<ul>
  <li>Route: {escape(route)}</li>
  <li>Window: {escape(window)}</li>
</ul>
<p>{_contact_line(host_contact_method, host_contact_value, trip_url)}</p>
<p><a href="{escape(trip_url)}">View trip</a></p>
"""
    return subject, html


def accepted_for_host_email(
    *,
    host_nickname: str,
    requester_name: str,
    route: str,
    window: str,
    luggage: Luggage,
    requester_contact_method: ContactMethod,
    requester_contact_value: Optional[str],
    trip_url: str,
) -> tuple[str, str]:
    subject = f"You are paired with {requester_name} for {route}"
    html = f"""
<p>Hi {escape(host_nickname)},</p>
<p>You accepted <strong>{escape(requester_name)}</strong> for your trip.</p>
<ul>
  <li>Route: {escape(route)}</li>
  <li>Window: {escape(window)}</li>
  <li>Guest luggage items: {luggage.total():g}</li>
</ul>
<p>{_contact_line(requester_contact_method, requester_contact_value, trip_url)}</p>
<p><a href="{escape(trip_url)}">View trip</a></p>
"""
    return subject, html


def declined_email(
    *, requester_name: str, route: str, window: str, trips_url: str
) -> tuple[str, str]:
    subject = f"Update on your pairing request for {route}"
    html = f"""
<p>Hi {escape(requester_name)},</p>
<p>The host of the trip {escape(route)} ({escape(window)}) paired with another rider.</p>
<p><a href="{escape(trips_url)}">Browse other trips</a></p>
"""
    return subject, html
