"""Outbound lead-qualification calls for property inquiries.

The package places outbound calls through a voice provider, keeps a
``call_appointments`` record per inquiry, and folds the provider's
asynchronous status and conversation events back into that record.
"""
