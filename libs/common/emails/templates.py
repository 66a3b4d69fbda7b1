"""
Transactional email templates.

Each renderer returns a ``RenderedEmail`` (subject, html, text). Values are
HTML-escaped before interpolation.
"""

from dataclasses import dataclass
from html import escape
from typing import Callable, Optional

from libs.common.errors import FieldValidationError

CLIENT_INVITATION = "client_invitation"
COACH_WELCOME = "coach_welcome"
COACH_WELCOME_WITH_PASSWORD = "coach_welcome_with_password"

FOOTER_TEXT = "---\nBYW - Build Your Way\nVotre plateforme de coaching personnalisé"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class EmailContext:
    recipient_email: str
    recipient_name: str
    coach_name: str = ""
    invitation_url: Optional[str] = None
    login_url: Optional[str] = None
    temp_password: Optional[str] = None
    plan_name: Optional[str] = None


def _layout(title: str, heading: str, subheading: str, body: str, disclaimer: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; margin: 0; padding: 0; background-color: #f8f9fa; }}
    .container {{ max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; overflow: hidden; }}
    .header {{ background: linear-gradient(135deg, #1f2937 0%, #111827 100%); padding: 40px 30px; text-align: center; }}
    .logo {{ color: #f97316; font-size: 32px; font-weight: bold; margin-bottom: 10px; }}
    .content {{ padding: 40px 30px; }}
    .cta-button {{ display: inline-block; background: #f97316; color: white; padding: 15px 30px; text-decoration: none; border-radius: 6px; font-weight: 600; margin: 20px 0; }}
    .credentials {{ background: #f8f9fa; padding: 20px; border-radius: 6px; border-left: 4px solid #f97316; margin: 20px 0; }}
    .password {{ background: #fff; padding: 10px; border-radius: 4px; font-family: monospace; font-size: 18px; font-weight: bold; }}
    .warning {{ background: #fef3c7; border: 1px solid #f59e0b; padding: 15px; border-radius: 6px; margin: 20px 0; }}
    .footer {{ background: #f8f9fa; padding: 30px; text-align: center; color: #6b7280; font-size: 14px; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <div class="logo">BYW</div>
      <h1 style="color: white; margin: 0; font-size: 28px;">{heading}</h1>
      <p style="color: #d1d5db; margin: 10px 0 0 0;">{subheading}</p>
    </div>
    <div class="content">
{body}
    </div>
    <div class="footer">
      <p><strong>BYW - Build Your Way</strong></p>
      <p>Votre plateforme de coaching personnalisé</p>
      <p>{disclaimer}</p>
    </div>
  </div>
</body>
</html>
"""


def _button(url: str, label: str) -> str:
    return (
        '      <div style="text-align: center; margin: 30px 0;">\n'
        f'        <a href="{escape(url, quote=True)}" class="cta-button">{label}</a>\n'
        "      </div>"
    )


def _plan_label(plan_name: Optional[str]) -> str:
    return (plan_name or "").replace("_", " ").upper()


def _require(value: Optional[str], field: str) -> str:
    if not value:
        raise FieldValidationError(f"Missing required field: {field}", field=field)
    return value


def render_client_invitation(ctx: EmailContext) -> RenderedEmail:
    url = _require(ctx.invitation_url, "invitation_url")
    name, coach = escape(ctx.recipient_name), escape(ctx.coach_name)
    body = f"""      <h2>Bonjour {name} !</h2>
      <p>Votre coach {coach} vous a invité à rejoindre sa plateforme de coaching personnalisé.</p>
{_button(url, "Rejoindre BYW")}
      <p>Vous pourrez consulter vos séances, suivre votre progression et communiquer avec votre coach.</p>
      <p><strong>Cette invitation expire dans 7 jours.</strong></p>"""
    text = f"""INVITATION BYW - {ctx.coach_name.upper()}

Bonjour {ctx.recipient_name} !

Votre coach {ctx.coach_name} vous a invité à rejoindre sa plateforme de coaching personnalisé.

REJOINDRE BYW :
{url}

Cette invitation expire dans 7 jours.

Si vous n'avez pas demandé cette invitation, vous pouvez ignorer cet email.

{FOOTER_TEXT}"""
    return RenderedEmail(
        subject=f"Invitation de {ctx.coach_name} - Rejoignez BYW",
        html=_layout(
            "Invitation BYW",
            f"Invitation de {coach}",
            "Votre espace de coaching vous attend",
            body,
            "Si vous n'avez pas demandé cette invitation, ignorez cet email.",
        ),
        text=text,
    )


def render_coach_welcome(ctx: EmailContext) -> RenderedEmail:
    url = _require(ctx.invitation_url, "invitation_url")
    name = escape(ctx.recipient_name)
    body = f"""      <h2>Félicitations pour votre abonnement !</h2>
      <p>Votre compte coach BYW est maintenant actif. Configurez votre mot de passe pour accéder à votre dashboard.</p>
{_button(url, "Configurer mon mot de passe")}
      <p><strong>Important :</strong> Ce lien expire dans 24 heures.</p>"""
    text = f"""BIENVENUE SUR BYW - {ctx.recipient_name.upper()} !

Votre compte coach BYW est maintenant actif.

CONFIGURER VOTRE MOT DE PASSE :
{url}

IMPORTANT : Ce lien expire dans 24 heures.

{FOOTER_TEXT}"""
    return RenderedEmail(
        subject=f"Bienvenue sur BYW, {ctx.recipient_name} ! Configurez votre compte coach",
        html=_layout(
            "Bienvenue sur BYW",
            f"Bienvenue {name} !",
            "Votre compte coach est prêt",
            body,
            "Si vous n'avez pas demandé ce compte, ignorez cet email.",
        ),
        text=text,
    )


def render_coach_welcome_with_password(ctx: EmailContext) -> RenderedEmail:
    password = _require(ctx.temp_password, "temp_password")
    login_url = _require(ctx.login_url, "login_url")
    name, email = escape(ctx.recipient_name), escape(ctx.recipient_email)
    plan = _plan_label(ctx.plan_name)
    body = f"""      <h2>Félicitations pour votre abonnement !</h2>
      <p>Votre compte coach BYW est prêt et vous pouvez commencer à utiliser la plateforme dès maintenant.</p>
      <div class="credentials">
        <h3>Vos identifiants de connexion :</h3>
        <p><strong>Email :</strong> {email}</p>
        <p><strong>Mot de passe provisoire :</strong></p>
        <div class="password">{escape(password)}</div>
      </div>
      <div class="warning">
        <p><strong>Important :</strong> Lors de votre première connexion, vous devrez changer ce mot de passe provisoire.</p>
      </div>
{_button(login_url, "Se connecter maintenant")}"""
    text = f"""BIENVENUE SUR BYW - {ctx.recipient_name.upper()} !

Votre compte coach BYW est prêt.
Votre pack {plan} est activé.

VOS IDENTIFIANTS DE CONNEXION :
Email : {ctx.recipient_email}
Mot de passe provisoire : {password}

SE CONNECTER MAINTENANT :
{login_url}

IMPORTANT : Lors de votre première connexion, vous devrez changer ce mot de passe provisoire.

{FOOTER_TEXT}"""
    return RenderedEmail(
        subject=f"🎉 Bienvenue sur BYW, {ctx.recipient_name} ! Vos accès sont prêts",
        html=_layout(
            "Bienvenue sur BYW",
            f"Bienvenue {name} !",
            f"Votre pack {escape(plan)} est activé",
            body,
            "Si vous n'avez pas créé de compte, ignorez cet email.",
        ),
        text=text,
    )


RENDERERS: dict[str, Callable[[EmailContext], RenderedEmail]] = {
    CLIENT_INVITATION: render_client_invitation,
    COACH_WELCOME: render_coach_welcome,
    COACH_WELCOME_WITH_PASSWORD: render_coach_welcome_with_password,
}


def render(template_type: str, ctx: EmailContext) -> RenderedEmail:
    try:
        renderer = RENDERERS[template_type]
    except KeyError:
        raise FieldValidationError(
            f"Unknown email type: {template_type}", field="type"
        ) from None
    return renderer(ctx)
