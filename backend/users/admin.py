from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import StudentProfile, User

@admin.register(User)
class CustomUserAdmin(UserAdmin):
    list_display = ('email', 'name', 'role', 'banned', 'is_staff', 'date_joined')
    list_filter = ('role', 'banned', 'is_staff', 'is_active')
    search_fields = ('email', 'name', 'username')
    ordering = ('-date_joined',)
    fieldsets = UserAdmin.fieldsets + (
        ('Certmint', {'fields': ('name', 'role', 'banned', 'must_change_password')}),
    )
    add_fieldsets = UserAdmin.add_fieldsets + (
        ('Certmint', {'fields': ('email', 'name', 'role')}),
    )


@admin.register(StudentProfile)
class StudentProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "date_of_birth", "course_name", "created_at")
    search_fields = ("user__email", "user__name", "course_name")
