import bleach
from rest_framework import serializers

from identity.models import Account
from identity.services.accounts import DoctorDetails, PatientDetails, StaffDetails

PHONE_PATTERN = r'^\+?[0-9][0-9 ()\-]{6,19}$'
PASSWORD_MIN_LENGTH = 6

REGISTRABLE_ROLES = [role for role, _ in Account.ROLE_CHOICES if role != Account.ROLE_ADMIN]


class PatientDetailsSerializer(serializers.Serializer):
    dateOfBirth = serializers.DateField()
    gender = serializers.ChoiceField(choices=Account.GENDER_CHOICES)
    bloodGroup = serializers.ChoiceField(choices=Account.BLOOD_GROUP_CHOICES)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')

    def to_details(self) -> PatientDetails:
        vd = self.validated_data
        return PatientDetails(
            date_of_birth=vd['dateOfBirth'],
            gender=vd['gender'],
            blood_group=vd['bloodGroup'],
            address=vd['address'],
        )


class StaffDetailsSerializer(serializers.Serializer):
    department = serializers.CharField(max_length=128)
    hireDate = serializers.DateField(required=False, allow_null=True, default=None)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')

    def to_details(self) -> StaffDetails:
        vd = self.validated_data
        return StaffDetails(department=vd['department'], hire_date=vd['hireDate'], address=vd['address'])


class DoctorDetailsSerializer(StaffDetailsSerializer):
    specialization = serializers.CharField(max_length=128)
    experience = serializers.CharField(max_length=64)
    licenseNumber = serializers.CharField(required=False, allow_blank=True, max_length=64, default='')

    def to_details(self) -> DoctorDetails:
        vd = self.validated_data
        return DoctorDetails(
            department=vd['department'],
            specialization=vd['specialization'],
            experience=vd['experience'],
            license_number=vd['licenseNumber'],
            hire_date=vd['hireDate'],
            address=vd['address'],
        )


DETAILS_SERIALIZERS = {
    Account.ROLE_PATIENT: PatientDetailsSerializer,
    Account.ROLE_DOCTOR: DoctorDetailsSerializer,
    Account.ROLE_NURSE: StaffDetailsSerializer,
    Account.ROLE_RECEPTIONIST: StaffDetailsSerializer,
    Account.ROLE_PHARMACY: StaffDetailsSerializer,
}


class RegisterSerializer(serializers.Serializer):
    """Registration payload.

    The common fields are declared here; the role picks which of the
    details serializers validates the rest of the body.  The validated
    data carries the resulting dataclass under ``details``.
    """
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=PASSWORD_MIN_LENGTH, trim_whitespace=False)
    role = serializers.CharField()
    phone = serializers.RegexField(PHONE_PATTERN, error_messages={'invalid': 'Please enter a valid phone number'})

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), tags=set(), strip=True)
        if not v:
            raise serializers.ValidationError('Name is required')
        return v

    def validate_role(self, v):
        if v == Account.ROLE_ADMIN:
            raise serializers.ValidationError('Admin accounts cannot be created through registration')
        if v not in REGISTRABLE_ROLES:
            raise serializers.ValidationError(f'"{v}" is not a valid choice.')
        return v

    def validate(self, attrs):
        details = DETAILS_SERIALIZERS[attrs['role']](data=self.initial_data)
        if not details.is_valid():
            raise serializers.ValidationError(details.errors)
        attrs['details'] = details.to_details()
        return attrs


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v


class VerifyEmailSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=128)


class ApproveUserSerializer(serializers.Serializer):
    userId = serializers.IntegerField(min_value=1)
    approved = serializers.BooleanField()


class SetActiveSerializer(serializers.Serializer):
    userId = serializers.IntegerField(min_value=1)
    active = serializers.BooleanField()


class CreateAdminSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=PASSWORD_MIN_LENGTH, trim_whitespace=False)
    phone = serializers.RegexField(PHONE_PATTERN, error_messages={'invalid': 'Please enter a valid phone number'})
    adminSecret = serializers.CharField(trim_whitespace=False)


class AccountSerializer(serializers.ModelSerializer):
    """Account projection returned to clients; never includes credentials."""
    uniqueId = serializers.CharField(source='unique_id', read_only=True)
    isVerified = serializers.BooleanField(source='is_verified', read_only=True)
    isApproved = serializers.BooleanField(source='is_approved', read_only=True)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    approvedAt = serializers.DateTimeField(source='approved_at', read_only=True)
    hireDate = serializers.DateField(source='hire_date', read_only=True)
    dateOfBirth = serializers.DateField(source='date_of_birth', read_only=True)
    bloodGroup = serializers.CharField(source='blood_group', read_only=True)
    licenseNumber = serializers.CharField(source='license_number', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    patientId = serializers.SerializerMethodField()

    class Meta:
        model = Account
        fields = [
            'id', 'uniqueId', 'name', 'email', 'phone', 'role', 'address',
            'department', 'hireDate', 'specialization', 'experience', 'licenseNumber',
            'dateOfBirth', 'gender', 'bloodGroup',
            'isActive', 'isVerified', 'isApproved', 'approvedAt', 'createdAt', 'patientId',
        ]
        read_only_fields = fields

    def get_patientId(self, obj):
        if not obj.is_patient:
            return None
        record = getattr(obj, 'patient_record', None)
        return record.patient_id if record else None


class AccountSummarySerializer(serializers.ModelSerializer):
    uniqueId = serializers.CharField(source='unique_id', read_only=True)

    class Meta:
        model = Account
        fields = ['id', 'name', 'email', 'uniqueId', 'role']
        read_only_fields = fields
