from rest_framework import serializers
from .models import User
from django.contrib.auth.password_validation import validate_password


# ============================
# Register Serializer
# ============================

class RegisterSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration.
    The verification subject is created by a post_save receiver in the verification app.
    """

    password = serializers.CharField(
        write_only=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    password_confirm = serializers.CharField(
        write_only=True,
        style={'input_type': 'password'}
    )
    user_type = serializers.ChoiceField(
        choices=[
            User.UserType.PRODUCER,
            User.UserType.TRADER,
            User.UserType.PURCHASER,
        ],
        default=User.UserType.PURCHASER
    )
    account_type = serializers.ChoiceField(
        choices=User.AccountType.choices,
        default=User.AccountType.INDIVIDUAL
    )

    class Meta:
        model = User
        fields = ("email", "full_name", "user_type", "account_type", "password", "password_confirm")

    def validate(self, attrs):
        """Validate that passwords match."""
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({
                "password_confirm": "Passwords do not match"
            })
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


# ============================
# User Serializer
# ============================

class UserSerializer(serializers.ModelSerializer):
    """Current user's account details including the headline verification status."""

    verification_status = serializers.CharField(source='verification_subject.status', read_only=True, default=None)

    class Meta:
        model = User
        fields = (
            "id",
            "email",
            "full_name",
            "user_type",
            "account_type",
            "verification_status",
            "date_joined",
        )
        read_only_fields = fields
