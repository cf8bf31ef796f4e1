"""Meeting notifications.

Matches a meeting's subjects against subscriber preferences, writes one
notification per matched user and type, and renders the email and
message deliveries the transport layer picks up.
"""
