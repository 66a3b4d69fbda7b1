"""
Transactional email package.

Modules:
- templates: subject, HTML and text renderers per email type
- client: EmailClient sending rendered emails through Resend
"""
