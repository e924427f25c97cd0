"""API tests for authentication endpoints and user identity."""

from __future__ import annotations

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.users.models import User
from shared.domain.value_objects import ActorRole


class AuthAPITests(APITestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(
            email="guest@example.com",
            phone="+7 700 123-45-67",
            password="StrongPass123",
        )

    def test_obtain_and_refresh_token(self) -> None:
        response = self.client.post(
            reverse("auth:token_obtain_pair"),
            {"email": "guest@example.com", "password": "StrongPass123"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)

        refresh = self.client.post(
            reverse("auth:token_refresh"),
            {"refresh": response.data["refresh"]},
            format="json",
        )
        self.assertEqual(refresh.status_code, status.HTTP_200_OK, refresh.data)
        self.assertIn("access", refresh.data)

    def test_wrong_password(self) -> None:
        response = self.client.post(
            reverse("auth:token_obtain_pair"),
            {"email": "guest@example.com", "password": "wrong"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_access_token_authenticates_api(self) -> None:
        token = self.client.post(
            reverse("auth:token_obtain_pair"),
            {"email": "guest@example.com", "password": "StrongPass123"},
            format="json",
        ).data["access"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = self.client.get(reverse("booking-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class UserIdentityTests(APITestCase):
    def test_phone_is_normalized(self) -> None:
        user = User.objects.create_user(email="p@example.com", phone="+7 700 000-00-01", password="x")
        self.assertEqual(user.phone, "+77000000001")

    def test_actor_roles(self) -> None:
        guest = User.objects.create_user(email="g@example.com", password="x")
        realtor = User.objects.create_user(email="r@example.com", password="x", role=User.RoleChoices.REALTOR)
        admin = User.objects.create_user(email="a@example.com", password="x", role=User.RoleChoices.SUPER_ADMIN)

        self.assertEqual(guest.as_actor().role, ActorRole.USER)
        self.assertEqual(guest.as_actor().id, guest.pk)
        self.assertEqual(realtor.as_actor().role, ActorRole.USER)
        self.assertTrue(realtor.is_realtor())
        self.assertTrue(admin.as_actor().is_admin)

    def test_superuser_is_admin(self) -> None:
        root = User.objects.create_superuser(email="root@example.com", password="x")
        self.assertTrue(root.is_platform_admin())
        self.assertEqual(root.as_actor().role, ActorRole.ADMIN)
