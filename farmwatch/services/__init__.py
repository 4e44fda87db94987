"""
Service Organization
====================

**application/**
  Services managed by ServiceContainer. One instance per application.
  Examples: FarmerService, slot aggregation, DashboardSession

**utilities/**
  Reusable building blocks without domain knowledge.
  Examples: RequestCoordinator
"""
