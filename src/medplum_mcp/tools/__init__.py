"""Tool handlers, one module per FHIR resource family.

Every handler takes the Medplum client as a keyword-only ``client``
argument. The router picks the call shape from the tool's descriptor:

- create/search tools:  handler(arguments, client=...)
- get-by-id tools:      handler(resource_id, client=...)
- update tools:         handler(resource_id, updates, client=...)

base.py holds the generic create/read/update/search logic; the family
modules bind it to their ResourceFamily.
"""
