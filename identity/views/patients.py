"""
Patient record lookup.

Clinical staff may open any record; a patient only their own.  The
approval gate runs first, so an unapproved doctor is turned away before
the per-record check.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from identity.errors import NotFound
from identity.models import PatientRecord
from identity.permissions import CanAccessPatientRecord, IsApproved
from identity.serializers.auth import AccountSerializer


def _check_patient_object_scope(request, patient_id) -> PatientRecord:
    record = PatientRecord.objects.select_related('account').filter(patient_id=patient_id).first()
    if record is None:
        raise NotFound('Patient not found')
    gate = CanAccessPatientRecord()
    if not gate.has_object_permission(request, None, record):
        raise PermissionDenied(gate.message)
    return record


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsApproved])
def patient_detail(request, patient_id):
    record = _check_patient_object_scope(request, patient_id)
    return Response({
        'patientId': record.patient_id,
        'createdAt': record.created_at,
        'account': AccountSerializer(record.account).data,
    })
