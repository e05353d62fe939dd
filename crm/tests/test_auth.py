"""
Login, JWT refresh and logout flows.

Written against the real authentication stack (no force_authenticate)
so that the portal claims inside the tokens are exercised too.
"""
from rest_framework import status
from rest_framework.test import APIClient, APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from crm.models import Clinic, User
from crm.throttles import LoginThrottle

PASSWORD = "S3cure-pass!"


class AuthFlowTests(APITestCase):
    def setUp(self) -> None:
        self.owner = User.objects.create_user(username="owner", password=PASSWORD, role="clinic")
        self.clinic = Clinic.objects.create(name="Palm Clinic", owner=self.owner, is_approved=True)
        self.agent = User.objects.create_user(username="agent", password=PASSWORD, role="agent",
                                              clinic=self.clinic, created_by=self.owner)

    def login(self, username, password=PASSWORD, **extra):
        return self.client.post("/api/auth/login", {"username": username, "password": password, **extra},
                                format="json")

    def bearer(self, access) -> APIClient:
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        return client

    def test_login_returns_tokens_and_profile(self):
        r = self.login("owner")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.data["token"])
        self.assertEqual(r.data["role"], "clinic")
        self.assertEqual(r.data["user"]["clinicId"], self.clinic.id)
        access = AccessToken(r.data["access"])
        self.assertEqual(access["role"], "clinic")
        self.assertEqual(access["clinicId"], self.clinic.id)

    def test_bad_credentials(self):
        r = self.login("owner", "wrong")
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data["message"], "Invalid username or password")

    def test_role_cannot_be_escalated_through_payload(self):
        r = self.login("agent", role="admin")
        self.assertEqual(r.data["role"], "agent")

    def test_portal_must_match_role(self):
        self.assertEqual(self.login("owner", portal="admin").status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.login("agent", portal="staff").status_code, status.HTTP_200_OK)
        self.assertEqual(self.login("agent", portal="agent").status_code, status.HTTP_200_OK)

    def test_access_token_and_legacy_token_authenticate(self):
        data = self.login("owner").data
        r = self.bearer(data["access"]).get("/api/push-notification/reply-notifications")
        self.assertEqual(r.status_code, status.HTTP_200_OK)

        legacy = APIClient()
        legacy.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
        self.assertEqual(legacy.get("/api/push-notification/reply-notifications").status_code, status.HTTP_200_OK)

    def test_token_rejected_after_role_change(self):
        access = self.login("agent").data["access"]
        self.agent.role = "doctorStaff"
        self.agent.save()
        r = self.bearer(access).get("/api/push-notification/reply-notifications")
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        refresh = self.login("owner").data["refresh"]
        r = self.client.post("/api/auth/refresh", {"refresh": refresh}, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.data["success"])
        self.assertIn("access", r.data)

    def test_logout_blacklists_refresh_token(self):
        data = self.login("owner").data
        r = self.bearer(data["access"]).post("/api/auth/logout", {"refresh": data["refresh"]}, format="json")
        self.assertEqual(r.data["blacklisted"], 1)
        r = self.client.post("/api/auth/refresh", {"refresh": data["refresh"]}, format="json")
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_refuses_foreign_token(self):
        mine = self.login("owner").data
        theirs = self.login("agent").data
        r = self.bearer(mine["access"]).post("/api/auth/logout", {"refresh": theirs["refresh"]}, format="json")
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_logout_without_token_blacklists_everything(self):
        first = self.login("owner").data
        self.login("owner")
        r = self.bearer(first["access"]).post("/api/auth/logout", {}, format="json")
        self.assertEqual(r.data["blacklisted"], 2)

    def test_login_is_throttled(self):
        original = LoginThrottle.THROTTLE_RATES
        LoginThrottle.THROTTLE_RATES = {**original, "login": "2/min"}
        self.addCleanup(setattr, LoginThrottle, "THROTTLE_RATES", original)
        self.login("owner")
        self.login("owner")
        self.assertEqual(self.login("owner").status_code, status.HTTP_429_TOO_MANY_REQUESTS)
