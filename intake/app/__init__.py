"""Intake web application: rate limiting and question triage."""
