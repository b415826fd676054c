from __future__ import annotations

from typing import Dict, List, Tuple


BRAND_NAME = 'VERONIKAextra'
CONTACT_EMAIL = 'infobabe09@gmail.com'
DEFAULT_COUNTRY = 'India'
DEFAULT_USD_TO_INR_RATE = '83'
IMAGE_COST_CREDITS = 5
INITIAL_CREDITS = 25

# (credits, inr_price)
DEFAULT_PLANS: List[Tuple[int, int]] = [
    (50, 149),
    (100, 229),
    (200, 299),
    (500, 349),
    (1000, 499),
]

DEFAULT_CONTACT: Dict[str, str] = {
    'email1': CONTACT_EMAIL,
    'email2': '',
    'location': '',
    'phone': '',
    'note': '',
}

DEFAULT_SOCIAL: Dict[str, str] = {
    'instagram': '',
    'twitter': '',
    'website': '',
    'general': '',
}

DEFAULT_TERMS = f"""
<h1>Terms of Service</h1>
<p><strong>Effective Date:</strong> January 1, 2025</p>
<p>Welcome to <strong>{BRAND_NAME}</strong>. By accessing or using our website and AI image generation services, you agree to be bound by these Terms of Service.</p>

<h3>1. Service Description</h3>
<p>{BRAND_NAME} provides an AI-powered platform that generates images from text prompts. The service is operated on a credit-based system.</p>

<h3>2. Account Registration and Security</h3>
<ul>
    <li>You must create an account to use the Services and provide accurate information.</li>
    <li>You are responsible for keeping your credentials confidential.</li>
    <li><strong>Device Authentication:</strong> free credits are granted once per device. Creating multiple accounts on the same device to bypass credit limits is prohibited.</li>
</ul>

<h3>3. Credits and Payments</h3>
<ul>
    <li><strong>Free Credits:</strong> New users on unique devices are granted {INITIAL_CREDITS} free credits. These have no cash value.</li>
    <li><strong>Purchases:</strong> Additional credits may be purchased via UPI (Cashfree) or cryptocurrency (OXAPAY).</li>
    <li><strong>Pricing:</strong> Each generated image costs {IMAGE_COST_CREDITS} credits.</li>
    <li><strong>Refund Policy:</strong> Credit purchases are final. Credits deducted for images that were not generated are returned to your balance automatically.</li>
</ul>

<h3>4. User Conduct and Content</h3>
<p>You agree not to generate content that is illegal, infringes the rights of others, sexualises minors, or promotes hate or violence.</p>

<h3>5. Intellectual Property</h3>
<p>You own the images you generate. All rights in the {BRAND_NAME} website, code and logos remain with us.</p>

<h3>6. Disclaimer of Warranties</h3>
<p>The Service is provided "AS IS". AI generation is probabilistic and output may vary.</p>

<h3>7. Contact Information</h3>
<p>Questions about these Terms: <a href="mailto:{CONTACT_EMAIL}">{CONTACT_EMAIL}</a></p>
"""

DEFAULT_PRIVACY = f"""
<h1>Privacy Policy</h1>
<p><strong>Effective Date:</strong> January 1, 2025</p>
<p>At <strong>{BRAND_NAME}</strong> we are committed to protecting your privacy.</p>

<h3>1. Information We Collect</h3>
<ul>
    <li><strong>Personal Information:</strong> name, email address and country. Passwords are stored only as hashes.</li>
    <li><strong>Device Identifier:</strong> used to prevent abuse of the free credit grant.</li>
</ul>

<h3>2. How We Use Your Information</h3>
<ul>
    <li>To provide the Service and manage your credit balance.</li>
    <li>To process payments through Cashfree and OXAPAY.</li>
    <li>To detect and prevent fraud.</li>
</ul>

<h3>3. Zero Image Storage Policy</h3>
<p>We do not permanently store generated images and do not use your prompts to train models. Download your creations before leaving the page.</p>

<h3>4. Payment Information</h3>
<p>We never store card details, UPI IDs or wallet keys. Payments are handled by the gateways.</p>

<h3>5. Contact Us</h3>
<p>Questions about this Policy: <a href="mailto:{CONTACT_EMAIL}">{CONTACT_EMAIL}</a></p>
"""
