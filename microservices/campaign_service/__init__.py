"""
Campaign Service

Collaborative marketing campaign microservice providing:
- Campaign creation (direct, wizard-assembled, imported from ad platforms)
- Validation of budgets, KPI weights, audiences, channels and team access
- Role-scoped team and client access
- Self-expiring drafts with auto-save and scheduled cleanup
- Publication from draft to active

Port: 8251
"""

__version__ = "1.0.0"
__service__ = "campaign_service"
