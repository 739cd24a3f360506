"""REST API for Ward Tracker.

This module provides the FastAPI application exposing the ward record
service: patients, medical notes, discharges, specialties and health.
"""
