"""
Telehealth Booking Service

A FastAPI-based service for booking online consultations: doctor
availability, conflict-free appointment booking, appointment lifecycle,
and the chat, prescription and video sessions attached to an appointment.
"""

__version__ = "1.0.0"
