"""
Family relationship graph.

Edges are directed requests (requester -> requested) but the pair is
unordered for uniqueness: once any edge exists between two accounts, in
either direction and in any status, no second one can be created.  A
declined request therefore blocks the pair for good; only accepted edges
can be removed.
"""
from __future__ import annotations

import logging
from typing import Dict, List

import bleach
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from identity.errors import DuplicateEdge, NotFound, TargetNotFound, TargetNotVerified
from identity.models import Account, FamilyRelationship
from identity.services.accounts import storage_errors
from identity.services.notifier import family_request_notice, family_response_notice, notifier

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20
NOTES_MAX_LENGTH = 500


def clean_notes(notes) -> str:
    text = bleach.clean(notes or '', tags=set(), strip=True).strip()
    if len(text) > NOTES_MAX_LENGTH:
        raise ValidationError({'notes': [f'Ensure this field has no more than {NOTES_MAX_LENGTH} characters.']})
    return text


def _edge_between(a: int, b: int):
    low, high = sorted((a, b))
    return FamilyRelationship.objects.filter(pair_low=low, pair_high=high).first()


@storage_errors
def search_accounts(caller_id: int, term: str) -> List[Dict]:
    """Find active accounts whose email or external id contains ``term``."""
    term = (term or '').strip()
    if not term:
        raise ValidationError({'searchTerm': ['Search term is required']})
    matches = (
        Account.objects.filter(is_active=True)
        .filter(Q(email__icontains=term) | Q(unique_id__icontains=term))
        .exclude(pk=caller_id)
        .order_by('name', 'pk')
        .values('id', 'name', 'email', 'unique_id', 'role', 'is_verified', 'is_approved')[:SEARCH_LIMIT]
    )
    return [
        {
            'id': row['id'],
            'name': row['name'],
            'email': row['email'],
            'uniqueId': row['unique_id'],
            'role': row['role'],
            'isVerified': row['is_verified'],
            'isApproved': row['is_approved'],
        }
        for row in matches
    ]


@storage_errors
def request_connection(requester_id: int, requested_id: int, kind: str, notes: str = '') -> FamilyRelationship:
    if requester_id == requested_id:
        raise ValidationError({'requestedId': ['You cannot send a family request to yourself']})
    if kind not in dict(FamilyRelationship.RELATIONSHIP_CHOICES):
        raise ValidationError({'relationship': [f'"{kind}" is not a valid choice.']})
    notes = clean_notes(notes)

    requester = Account.objects.filter(pk=requester_id, is_active=True).first()
    if requester is None:
        raise NotFound('Account not found')
    target = Account.objects.filter(pk=requested_id, is_active=True).first()
    if target is None:
        raise TargetNotFound()
    if not target.is_verified:
        raise TargetNotVerified()
    if _edge_between(requester_id, requested_id) is not None:
        raise DuplicateEdge()

    edge = FamilyRelationship(requester=requester, requested=target, relationship=kind, notes=notes)
    try:
        with transaction.atomic():
            edge.save()
    except IntegrityError as exc:
        # A concurrent request for the same pair won the unique index.
        raise DuplicateEdge() from exc

    logger.info("family request %s: %s -> %s (%s)", edge.pk, requester.unique_id, target.unique_id, kind)
    notifier.dispatch(family_request_notice(requester, target, edge))
    return edge


@storage_errors
def list_for_user(user_id: int) -> Dict[str, List[FamilyRelationship]]:
    edges = FamilyRelationship.objects.select_related('requester', 'requested')
    incoming = edges.filter(requested_id=user_id, status=FamilyRelationship.STATUS_PENDING).order_by('-requested_at')
    outgoing = edges.filter(requester_id=user_id, status=FamilyRelationship.STATUS_PENDING).order_by('-requested_at')
    accepted = (
        edges.filter(Q(requester_id=user_id) | Q(requested_id=user_id), status=FamilyRelationship.STATUS_ACCEPTED)
        .order_by('-responded_at')
    )
    return {'incoming': list(incoming), 'outgoing': list(outgoing), 'accepted': list(accepted)}


@storage_errors
def respond(user_id: int, edge_id: int, decision: str) -> FamilyRelationship:
    """Accept or decline a pending request addressed to ``user_id``.

    The status change is a single conditional update, so of two racing
    responses exactly one succeeds.
    """
    if decision not in FamilyRelationship.DECISIONS:
        raise ValidationError({'status': ['Invalid status. Must be "accepted" or "declined"']})
    changed = FamilyRelationship.objects.filter(
        pk=edge_id, requested_id=user_id, status=FamilyRelationship.STATUS_PENDING,
    ).update(status=decision, responded_at=timezone.now())
    if not changed:
        raise NotFound('Request not found')

    edge = FamilyRelationship.objects.select_related('requester', 'requested').get(pk=edge_id)
    logger.info("family request %s %s by %s", edge.pk, decision, edge.requested.unique_id)
    notifier.dispatch(family_response_notice(edge.requester, edge.requested, edge))
    return edge


@storage_errors
def remove(user_id: int, edge_id: int) -> None:
    deleted, _ = FamilyRelationship.objects.filter(
        Q(requester_id=user_id) | Q(requested_id=user_id),
        pk=edge_id,
        status=FamilyRelationship.STATUS_ACCEPTED,
    ).delete()
    if not deleted:
        raise NotFound('Family member not found')
    logger.info("family relationship %s removed by account %s", edge_id, user_id)
