"""API router subpackage for the region service.

Submodules:
    - regions: Endpoints for importing, listing, searching and rendering
      regions, and for resolving a point to its administrative hierarchy.
    - grievances: Grievance intake with automatic region assignment.
"""
