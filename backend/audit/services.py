from __future__ import annotations

import logging
from typing import Any, Optional

from django.http import HttpRequest

from .models import AuditLog


logger = logging.getLogger(__name__)


def _get_ip(request: HttpRequest) -> str:
	xff = (request.META.get("HTTP_X_FORWARDED_FOR") or "").strip()
	if xff:
		return xff.split(",")[0].strip()
	return (request.META.get("REMOTE_ADDR") or "").strip()


def log_event(
	request: HttpRequest,
	*,
	event_type: str,
	object_type: str = "",
	object_id: str | int = "",
	metadata: Optional[dict[str, Any]] = None,
) -> Optional[AuditLog]:
	"""Record an admin decision. Anonymous requests are not recorded."""

	user = getattr(request, "user", None)
	if not getattr(user, "is_authenticated", False):
		return None

	entry = AuditLog.objects.create(
		actor=user,
		actor_email=getattr(user, "email", "") or "",
		event_type=event_type,
		object_type=object_type or "",
		object_id=str(object_id) if object_id is not None else "",
		path=(getattr(request, "path", "") or "")[:300],
		method=(getattr(request, "method", "") or ""),
		ip_address=_get_ip(request),
		metadata=metadata or {},
	)
	logger.info("Audit %s by %s on %s:%s", event_type, entry.actor_email, entry.object_type, entry.object_id)
	return entry
