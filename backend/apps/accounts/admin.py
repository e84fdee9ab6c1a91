from django import forms
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.forms import ReadOnlyPasswordHashField

from .models import User


class UserCreationForm(forms.ModelForm):
    """Create an account with its classification; the verification record follows via post_save."""
    password1 = forms.CharField(label='Password', widget=forms.PasswordInput)
    password2 = forms.CharField(label='Password confirmation', widget=forms.PasswordInput)

    class Meta:
        model = User
        fields = ('email', 'full_name', 'user_type', 'account_type')

    def clean_password2(self):
        password1 = self.cleaned_data.get('password1')
        password2 = self.cleaned_data.get('password2')
        if password1 and password2 and password1 != password2:
            raise forms.ValidationError("Passwords don't match")
        return password2

    def save(self, commit=True):
        user = super().save(commit=False)
        user.set_password(self.cleaned_data['password1'])
        if commit:
            user.save()
        return user


class UserChangeForm(forms.ModelForm):
    password = ReadOnlyPasswordHashField(label='Password')

    class Meta:
        model = User
        fields = '__all__'


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Accounts with their classification and current verification status."""
    form = UserChangeForm
    add_form = UserCreationForm

    list_display = ('email', 'full_name', 'user_type', 'account_type', 'verification_status', 'is_staff', 'date_joined')
    list_filter = ('user_type', 'account_type', 'verification_subject__status', 'is_staff', 'is_active')
    list_select_related = ('verification_subject',)
    search_fields = ('email', 'full_name')
    ordering = ('-date_joined',)
    readonly_fields = ('date_joined', 'updated_at', 'last_login')

    fieldsets = (
        (None, {'fields': ('email', 'password', 'full_name')}),
        ('Classification', {'fields': ('user_type', 'account_type')}),
        ('Review access', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Dates', {'fields': ('date_joined', 'updated_at', 'last_login'), 'classes': ('collapse',)}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'full_name', 'user_type', 'account_type', 'password1', 'password2'),
        }),
    )

    @admin.display(description='Verification', ordering='verification_subject__status')
    def verification_status(self, obj):
        subject = getattr(obj, 'verification_subject', None)
        return subject.get_status_display() if subject else '-'
