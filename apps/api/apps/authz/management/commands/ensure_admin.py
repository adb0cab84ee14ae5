"""
Management command to ensure an admin account exists (for Docker startup).
"""
import os

from django.core.management.base import BaseCommand

from apps.authz.models import Profile, RoleChoices, User


class Command(BaseCommand):
    help = 'Create the admin account and its profile if they do not exist'

    def handle(self, *args, **options):
        email = os.environ.get('DJANGO_SUPERUSER_EMAIL', 'admin@example.com')
        password = os.environ.get('DJANGO_SUPERUSER_PASSWORD', 'admin123dev')

        user = User.objects.filter(email=email).first()
        if user is None:
            user = User.objects.create_superuser(email=email, password=password)
            self.stdout.write(self.style.SUCCESS(f'Superuser "{email}" created successfully'))
        else:
            self.stdout.write(self.style.WARNING(f'Superuser "{email}" already exists'))

        _, created = Profile.objects.get_or_create(
            user=user,
            defaults={
                'first_name': 'Admin',
                'last_name': 'Clinique',
                'email': email,
                'role': RoleChoices.ADMIN,
            }
        )
        if created:
            self.stdout.write(self.style.SUCCESS('Admin profile created'))
