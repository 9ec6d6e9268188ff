import pytest
from rest_framework.exceptions import ValidationError

from identity.errors import DuplicateEdge, NotFound, TargetNotFound, TargetNotVerified
from identity.models import FamilyRelationship
from identity.services import family
from identity.tests.factories import make_account

pytestmark = pytest.mark.django_db


@pytest.fixture
def jane():
    return make_account(email='jane@x.io', name='Jane')


@pytest.fixture
def raj():
    return make_account(email='raj@x.io', name='Raj')


def test_request_creates_pending_edge(jane, raj):
    edge = family.request_connection(jane.id, raj.id, 'spouse', 'married 2015')
    assert edge.status == FamilyRelationship.STATUS_PENDING
    assert edge.responded_at is None
    assert (edge.pair_low, edge.pair_high) == tuple(sorted((jane.id, raj.id)))
    assert edge.notes == 'married 2015'


def test_request_rejects_self(jane):
    with pytest.raises(ValidationError):
        family.request_connection(jane.id, jane.id, 'spouse')


def test_request_unknown_or_unverified_target(jane):
    with pytest.raises(TargetNotFound):
        family.request_connection(jane.id, 987654, 'sibling')
    unverified = make_account(verified=False)
    with pytest.raises(TargetNotVerified):
        family.request_connection(jane.id, unverified.id, 'sibling')
    assert not FamilyRelationship.objects.exists()


def test_request_rejects_unknown_relationship(jane, raj):
    with pytest.raises(ValidationError):
        family.request_connection(jane.id, raj.id, 'cousin')


def test_one_edge_per_pair_in_either_direction(jane, raj):
    family.request_connection(jane.id, raj.id, 'spouse')
    with pytest.raises(DuplicateEdge):
        family.request_connection(jane.id, raj.id, 'spouse')
    with pytest.raises(DuplicateEdge):
        family.request_connection(raj.id, jane.id, 'spouse')
    assert FamilyRelationship.objects.count() == 1


def test_declined_edge_blocks_the_pair(jane, raj):
    edge = family.request_connection(jane.id, raj.id, 'spouse')
    declined = family.respond(raj.id, edge.id, 'declined')
    assert declined.status == 'declined'
    assert declined.responded_at is not None
    with pytest.raises(DuplicateEdge):
        family.request_connection(jane.id, raj.id, 'spouse')
    with pytest.raises(DuplicateEdge):
        family.request_connection(raj.id, jane.id, 'spouse')


def test_concurrent_request_is_decided_by_unique_index(jane, raj, monkeypatch):
    family.request_connection(jane.id, raj.id, 'spouse')
    monkeypatch.setattr(family, '_edge_between', lambda a, b: None)
    with pytest.raises(DuplicateEdge):
        family.request_connection(raj.id, jane.id, 'spouse')
    assert FamilyRelationship.objects.count() == 1


def test_only_the_requested_party_can_respond_once(jane, raj):
    edge = family.request_connection(jane.id, raj.id, 'sibling')
    with pytest.raises(NotFound):
        family.respond(jane.id, edge.id, 'accepted')
    accepted = family.respond(raj.id, edge.id, 'accepted')
    assert accepted.status == 'accepted'
    with pytest.raises(NotFound):
        family.respond(raj.id, edge.id, 'declined')
    edge.refresh_from_db()
    assert edge.status == 'accepted'


def test_respond_rejects_pending_as_decision(jane, raj):
    edge = family.request_connection(jane.id, raj.id, 'sibling')
    with pytest.raises(ValidationError):
        family.respond(raj.id, edge.id, 'pending')


def test_list_for_user_buckets(jane, raj):
    other = make_account()
    to_raj = family.request_connection(jane.id, raj.id, 'sibling')
    from_other = family.request_connection(other.id, jane.id, 'parent')
    assert family.list_for_user(jane.id) == {'incoming': [from_other], 'outgoing': [to_raj], 'accepted': []}

    family.respond(raj.id, to_raj.id, 'accepted')
    family.respond(jane.id, from_other.id, 'declined')
    buckets = family.list_for_user(jane.id)
    assert buckets['incoming'] == [] and buckets['outgoing'] == []
    assert [e.id for e in buckets['accepted']] == [to_raj.id]
    assert [e.id for e in family.list_for_user(raj.id)['accepted']] == [to_raj.id]


def test_remove_only_accepted_edges_by_either_party(jane, raj):
    edge = family.request_connection(jane.id, raj.id, 'sibling')
    with pytest.raises(NotFound):
        family.remove(jane.id, edge.id)
    family.respond(raj.id, edge.id, 'accepted')

    outsider = make_account()
    with pytest.raises(NotFound):
        family.remove(outsider.id, edge.id)

    family.remove(raj.id, edge.id)
    assert not FamilyRelationship.objects.exists()
    # The pair is free again after removal.
    family.request_connection(raj.id, jane.id, 'sibling')


def test_notes_are_stripped_of_markup(jane, raj):
    edge = family.request_connection(jane.id, raj.id, 'other', '<script>x</script><b>cousin</b>')
    assert '<' not in edge.notes
    assert 'cousin' in edge.notes


def test_search_matches_email_or_unique_id(jane, raj):
    make_account(email='inactive-raj@x.io', is_active=False)
    found = family.search_accounts(jane.id, 'RAJ@')
    assert [r['email'] for r in found] == ['raj@x.io']
    assert set(found[0]) == {'id', 'name', 'email', 'uniqueId', 'role', 'isVerified', 'isApproved'}

    by_id = family.search_accounts(jane.id, raj.unique_id.lower())
    assert [r['id'] for r in by_id] == [raj.id]


def test_search_excludes_caller_and_caps_results(jane):
    for _ in range(family.SEARCH_LIMIT + 5):
        make_account()
    found = family.search_accounts(jane.id, '@example.com')
    assert len(found) == family.SEARCH_LIMIT
    assert family.search_accounts(jane.id, 'jane@x.io') == []


def test_search_requires_term(jane):
    with pytest.raises(ValidationError):
        family.search_accounts(jane.id, '  ')