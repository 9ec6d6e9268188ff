"""
Family relationship endpoints.

The caller is always the bearer of the token; ids in the body only ever
name the other party or the edge being acted on.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from identity.serializers.family import (
    FamilyRelationshipSerializer,
    FamilyRemoveSerializer,
    FamilyRequestSerializer,
    FamilyRespondSerializer,
    FamilySearchSerializer,
)
from identity.services import family
from identity.services.audit import try_log_action


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def family_search(request):
    s = FamilySearchSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(family.search_accounts(request.user.id, s.validated_data['searchTerm']))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def family_request(request):
    s = FamilyRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    edge = family.request_connection(request.user.id, vd['requestedId'], vd['relationship'], vd['notes'])
    try_log_action(account=request.user, action='family_request', object_type='family', object_id=edge.id,
                   detail={'requestedId': vd['requestedId'], 'relationship': vd['relationship']})
    return Response({
        'ok': True,
        'message': 'Family request sent successfully',
        'request': FamilyRelationshipSerializer(edge).data,
    }, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def family_requests(request):
    buckets = family.list_for_user(request.user.id)
    return Response({
        name: FamilyRelationshipSerializer(edges, many=True).data
        for name, edges in buckets.items()
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def family_respond(request):
    s = FamilyRespondSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    edge = family.respond(request.user.id, vd['requestId'], vd['status'])
    try_log_action(account=request.user, action='family_respond', object_type='family', object_id=edge.id,
                   detail={'status': edge.status})
    return Response({
        'ok': True,
        'message': f'Family request {edge.status} successfully',
        'request': FamilyRelationshipSerializer(edge).data,
    })


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def family_remove(request):
    # DELETE bodies are optional for some clients; accept the id as a query param too.
    s = FamilyRemoveSerializer(data=request.data or request.query_params)
    s.is_valid(raise_exception=True)
    edge_id = s.validated_data['requestId']

    family.remove(request.user.id, edge_id)
    try_log_action(account=request.user, action='family_remove', object_type='family', object_id=edge_id)
    return Response({'ok': True, 'message': 'Family member removed successfully'})
