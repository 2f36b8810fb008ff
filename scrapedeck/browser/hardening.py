"""Fingerprint hardening applied to every freshly opened page."""

from __future__ import annotations

import json
import random
from typing import Any

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

VIEWPORTS: tuple[tuple[int, int], ...] = (
    (1920, 1080),
    (1366, 768),
    (1536, 864),
    (1440, 900),
    (1280, 720),
    (1600, 900),
)

EXTRA_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
        "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
    "Accept-Encoding": "gzip, deflate, br",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "max-age=0",
    "sec-ch-ua": '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "sec-fetch-user": "?1",
    "upgrade-insecure-requests": "1",
}

# Filled into outgoing requests only when the request does not carry them already.
BASELINE_FETCH_HEADERS: dict[str, str] = {
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "sec-fetch-user": "?1",
}

STEALTH_SCRIPT = r"""
(() => {
  Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
  Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
  Object.defineProperty(navigator, 'userAgent', { get: () => __USER_AGENT__ });
  Object.defineProperty(navigator, 'appVersion', { get: () => __USER_AGENT__.replace(/^Mozilla\//, '') });
  Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
  if ('userAgentData' in navigator) {
    const brands = [
      { brand: 'Google Chrome', version: '131' },
      { brand: 'Chromium', version: '131' },
      { brand: 'Not_A Brand', version: '24' },
    ];
    Object.defineProperty(navigator, 'userAgentData', {
      get: () => ({
        brands,
        mobile: false,
        platform: 'Windows',
        getHighEntropyValues: () =>
          Promise.resolve({ brands, mobile: false, platform: 'Windows', platformVersion: '10.0.0' }),
        toJSON: () => ({ brands, mobile: false, platform: 'Windows' }),
      }),
    });
  }

  const fakePlugins = [
    { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
    { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '' },
    { name: 'Native Client', filename: 'internal-nacl-plugin', description: '' },
  ];
  Object.defineProperty(navigator, 'plugins', {
    get: () => Object.assign(fakePlugins, {
      length: fakePlugins.length,
      item: (i) => fakePlugins[i] || null,
      namedItem: (n) => fakePlugins.find((p) => p.name === n) || null,
      refresh: () => {},
    }),
  });

  if (!window.chrome) {
    window.chrome = {
      runtime: {},
      loadTimes: () => ({
        requestTime: Date.now() / 1000,
        startLoadTime: Date.now() / 1000,
        commitLoadTime: Date.now() / 1000,
        finishDocumentLoadTime: Date.now() / 1000,
        finishLoadTime: Date.now() / 1000,
        firstPaintTime: Date.now() / 1000,
        navigationType: 'Other',
        wasFetchedViaSpdy: true,
        wasNpnNegotiated: true,
        npnNegotiatedProtocol: 'h2',
        connectionInfo: 'h2',
      }),
      csi: () => ({ onloadT: Date.now(), startE: Date.now(), pageT: Math.random() * 1000, tran: 15 }),
    };
  }

  if (navigator.permissions && navigator.permissions.query) {
    const originalQuery = navigator.permissions.query.bind(navigator.permissions);
    navigator.permissions.query = (parameters) =>
      parameters && parameters.name === 'notifications'
        ? Promise.resolve({ state: Notification.permission, onchange: null })
        : originalQuery(parameters);
  }

  if (navigator.mediaDevices) {
    navigator.mediaDevices.getUserMedia = () =>
      new Promise((_, reject) => {
        setTimeout(
          () => reject(new DOMException('Permission denied', 'NotAllowedError')),
          50 + Math.random() * 100,
        );
      });
  }

  const patchWebGL = (proto) => {
    if (!proto) return;
    const getParameter = proto.getParameter;
    proto.getParameter = function (parameter) {
      if (parameter === 37445) return 'Intel Inc.';
      if (parameter === 37446) return 'Intel Iris OpenGL Engine';
      return getParameter.call(this, parameter);
    };
  };
  patchWebGL(window.WebGLRenderingContext && WebGLRenderingContext.prototype);
  patchWebGL(window.WebGL2RenderingContext && WebGL2RenderingContext.prototype);

  Object.defineProperty(screen, 'availHeight', { get: () => window.innerHeight });
  Object.defineProperty(screen, 'availWidth', { get: () => window.innerWidth });

  const originalRandom = Math.random;
  Math.random = () => {
    const value = originalRandom() + (originalRandom() - 0.5) * 1e-10;
    return Math.min(Math.max(value, 0), 0.9999999999);
  };

  if (!navigator.getBattery) {
    navigator.getBattery = () =>
      Promise.resolve({ charging: true, chargingTime: 0, dischargingTime: Infinity, level: 1 });
  }

  const frameDescriptor = Object.getOwnPropertyDescriptor(HTMLIFrameElement.prototype, 'contentWindow');
  if (frameDescriptor && frameDescriptor.get) {
    Object.defineProperty(HTMLIFrameElement.prototype, 'contentWindow', {
      get: function () {
        const win = frameDescriptor.get.call(this);
        if (win) {
          try {
            Object.defineProperty(win, 'navigator', { value: navigator, writable: false, configurable: true });
          } catch (e) {}
        }
        return win;
      },
    });
  }

  const dateOffset = Math.floor(Math.random() * 10) - 5;
  const OriginalDate = Date;
  const originalNow = Date.now.bind(Date);
  Date.now = () => originalNow() + dateOffset;
  window.Date = class extends OriginalDate {
    constructor(...args) {
      if (args.length === 0) {
        super(originalNow() + dateOffset);
      } else {
        super(...args);
      }
    }
    static now() {
      return originalNow() + dateOffset;
    }
  };

  const perfOffset = Math.random() * 0.1;
  const originalPerfNow = performance.now.bind(performance);
  performance.now = () => originalPerfNow() + perfOffset;
})();
""".replace("__USER_AGENT__", json.dumps(USER_AGENT))


def pick_viewport(rng: random.Random | None = None) -> dict[str, int]:
    width, height = (rng or random).choice(VIEWPORTS)
    return {"width": width, "height": height}


def context_options(rng: random.Random | None = None) -> dict[str, Any]:
    """Keyword arguments for ``browser.new_context`` matching the spoofed fingerprint."""
    return {
        "user_agent": USER_AGENT,
        "viewport": pick_viewport(rng),
        "locale": "en-US",
    }


async def fill_fetch_headers(route: Any, request: Any) -> None:
    """Continue a request with any missing baseline ``sec-fetch-*`` headers added."""
    headers = dict(request.headers)
    present = {key.lower() for key in headers}
    missing = {k: v for k, v in BASELINE_FETCH_HEADERS.items() if k not in present}
    if not missing:
        await route.continue_()
        return
    headers.update(missing)
    await route.continue_(headers=headers)


async def harden_page(page: Any, *, rng: random.Random | None = None) -> dict[str, int]:
    """Install fingerprint spoofing on ``page`` before its first navigation.

    Keeps the viewport the page already has from its context, otherwise picks one.
    Returns the viewport that was applied.
    """
    viewport = getattr(page, "viewport_size", None) or pick_viewport(rng)
    await page.set_viewport_size(viewport)
    await page.set_extra_http_headers(EXTRA_HEADERS)
    await page.add_init_script(STEALTH_SCRIPT)
    await page.route("**/*", fill_fetch_headers)
    return viewport
