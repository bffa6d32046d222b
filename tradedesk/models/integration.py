"""
Integration Models - inbound webhook logs
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, JSON
from tradedesk.core.database import Base
from .base import UUIDMixin, utcnow


class WebhookLog(Base, UUIDMixin):
    """
    Log incoming webhook payloads for debugging and replay
    """
    __tablename__ = "webhook_log"

    source = Column(String(30), nullable=False, index=True)  # carrier, payment
    event_type = Column(String(50))  # carrier status / gateway status
    
    # Request data
    payload = Column(JSON)
    headers = Column(JSON)
    signature = Column(String(500))
    
    # Processing status
    processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(DateTime)
    process_result = Column(String(50))  # SUCCESS, FAILED, SKIPPED, REJECTED
    process_error = Column(Text)
    
    # Metadata
    received_at = Column(DateTime, default=utcnow, nullable=False)
    ip_address = Column(String(50))

    def __repr__(self):
        return f"<WebhookLog {self.source} {self.event_type} {self.received_at}>"
    
    def mark_processed(self, result: str, error: str = None):
        self.processed = True
        self.processed_at = utcnow()
        self.process_result = result
        self.process_error = error
