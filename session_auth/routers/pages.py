# session_auth/routers/pages.py
import html
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, RedirectResponse

from session_auth import config
from session_auth.deps import get_optional_session
from session_auth.services.access_gate import LOGIN_PATH
from session_auth.services.session_service import SessionData

router = APIRouter(tags=["pages"])
logger = logging.getLogger("session_auth.pages")


def _page(title: str, body: str, head: str = "") -> HTMLResponse:
    return HTMLResponse(f"""<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>{title}</title>{head}</head>
<body>
<main>
<h1>{title}</h1>
{body}
</main>
</body>
</html>""")


# Posts a form as JSON to an API endpoint and shows the {error} or {message} it returns
FORM_SCRIPT = """
<p id="result" role="alert"></p>
<script>
async function submitJson(form, url, extra, onOk) {
  const data = Object.fromEntries(new FormData(form).entries());
  Object.assign(data, extra || {});
  const res = await fetch(url, {method: "POST", headers: {"Content-Type": "application/json"}, body: JSON.stringify(data)});
  const body = await res.json();
  document.getElementById("result").textContent = body.error || body.message || "";
  if (res.ok && onOk) onOk(body);
  return res.ok;
}
</script>
"""


@router.get("/", response_class=HTMLResponse)
async def home(session: Optional[SessionData] = Depends(get_optional_session)):
    if session:
        body = f"""<p>Welcome, {html.escape(session.email)}. You are already signed in.</p>
<p><a href="/dashboard">Go to dashboard</a></p>"""
    else:
        body = """<p><a href="/login">Log in</a> · <a href="/signup">Sign up</a></p>
<p><a href="/reset-password">Forgot your password?</a></p>"""
    return _page("Authentication", body)


@router.get("/login", response_class=HTMLResponse)
async def login_page():
    head = ""
    captcha = ""
    if config.RECAPTCHA_SITE_KEY:
        head = '<script src="https://www.google.com/recaptcha/api.js?onload=initCaptcha&render=explicit" async defer></script>'
        # The widget lives for one page view: rendered once on load, reset when the page is left
        captcha = f"""<div id="captcha"></div>
<script>
let captchaWidget = null;
let captchaToken = "";
function initCaptcha() {{
  if (captchaWidget !== null) return;
  captchaWidget = grecaptcha.render("captcha", {{
    sitekey: {json.dumps(config.RECAPTCHA_SITE_KEY)},
    callback: (t) => {{ captchaToken = t; }},
    "expired-callback": () => {{ captchaToken = ""; }},
  }});
}}
window.addEventListener("pagehide", () => {{
  if (captchaWidget !== null) grecaptcha.reset(captchaWidget);
  captchaWidget = null;
  captchaToken = "";
}});
</script>"""
    body = f"""<form id="login" onsubmit="event.preventDefault(); login(this);">
<label>Email <input name="email" type="email" required></label>
<label>Password <input name="password" type="password" required></label>
{captcha}
<button type="submit">Log in</button>
</form>
<p><a href="/signup">Sign up</a> · <a href="/reset-password">Forgot your password?</a></p>
{FORM_SCRIPT}
<script>
async function login(form) {{
  const extra = typeof captchaToken !== "undefined" ? {{recaptchaToken: captchaToken}} : {{}};
  const ok = await submitJson(form, "/api/login", extra);
  if (ok) window.location.href = "/dashboard";
  else if (typeof captchaWidget !== "undefined" && captchaWidget !== null) {{ grecaptcha.reset(captchaWidget); captchaToken = ""; }}
}}
</script>"""
    return _page("Log in", body, head)


@router.get("/signup", response_class=HTMLResponse)
async def signup_page():
    body = f"""<form onsubmit="event.preventDefault(); submitJson(this, '/api/signup', null, () => window.location.href = '/login');">
<label>Email <input name="email" type="email" required></label>
<label>Password <input name="password" type="password" minlength="6" required></label>
<label>Secret question
<select name="secretQuestion" required>
<option value="What was the name of your first pet?">What was the name of your first pet?</option>
<option value="What city were you born in?">What city were you born in?</option>
<option value="What was the name of your elementary school?">What was the name of your elementary school?</option>
<option value="What is your favorite book?">What is your favorite book?</option>
</select></label>
<label>Answer <input name="secretAnswer" required></label>
<button type="submit">Sign up</button>
</form>
<p><a href="/login">Already have an account?</a></p>
{FORM_SCRIPT}"""
    return _page("Sign up", body)


@router.get("/reset-password", response_class=HTMLResponse)
async def reset_password_page():
    body = f"""<form id="ask" onsubmit="event.preventDefault(); askQuestion(this);">
<label>Email <input name="email" type="email" required></label>
<button type="submit">Next</button>
</form>
<form id="reset" hidden onsubmit="event.preventDefault(); submitJson(this, '/api/reset-password', {{step: 'reset-password'}}, () => window.location.href = '/login');">
<input name="email" type="hidden">
<p id="question"></p>
<label>Answer <input name="secretAnswer" required></label>
<label>New password <input name="newPassword" type="password" minlength="6" required></label>
<button type="submit">Reset password</button>
</form>
{FORM_SCRIPT}
<script>
async function askQuestion(form) {{
  const email = form.email.value;
  await submitJson(form, "/api/reset-password", {{step: "get-question"}}, (body) => {{
    const reset = document.getElementById("reset");
    reset.email.value = email;
    document.getElementById("question").textContent = body.secretQuestion;
    form.hidden = true;
    reset.hidden = false;
  }});
}}
</script>"""
    return _page("Reset password", body)


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(session: Optional[SessionData] = Depends(get_optional_session)):
    if not session:
        return RedirectResponse(LOGIN_PATH)
    logger.info(f"Dashboard viewed by user {session.user_id}")
    body = f"""<p>Welcome, {html.escape(session.email)}!</p>
<p>You are signed in. This page is only available after login.</p>
<button onclick="fetch('/api/logout', {{method: 'POST'}}).then((r) => {{ if (r.ok) window.location.href = '/login'; }});">Log out</button>"""
    return _page("Dashboard", body)
