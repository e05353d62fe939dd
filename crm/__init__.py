"""Clinic CRM application.

Models, services, serializers, views and realtime consumers behind the
clinic, doctor, agent and admin portals.
"""
