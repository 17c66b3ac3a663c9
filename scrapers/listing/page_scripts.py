"""
JavaScript evaluated in page context.

Kept in one place so the count used by the scroll loop and the container
enumeration used by the extractor always agree on the selector family.
"""

# First selector (in priority order) that matches anything wins.
COUNT_CONTAINERS_JS = """
(selectors) => {
    for (const sel of selectors) {
        const n = document.querySelectorAll(sel).length;
        if (n) return n;
    }
    return 0;
}
"""

COLLECT_CONTAINERS_JS = """
({selectors, limit, pricePattern}) => {
    const priced = pricePattern ? new RegExp(pricePattern, "i") : null;
    for (const sel of selectors) {
        let nodes = Array.from(document.querySelectorAll(sel));
        // Keep the smallest priced blocks: unpriced controls (ADD buttons) neither count nor block
        if (priced) {
            nodes = nodes.filter(n => priced.test(n.textContent)
                && !Array.from(n.querySelectorAll(sel)).some(c => priced.test(c.textContent)));
        }
        if (nodes.length) {
            return {selector: sel, html: nodes.slice(0, limit).map(n => n.outerHTML)};
        }
    }
    return {selector: null, html: []};
}
"""

# Scroll the nearest dedicated scrollable region, else the window.
SCROLL_ADVANCE_JS = """
(regionSelector) => {
    const scrollable = el => {
        if (!el) return false;
        const style = getComputedStyle(el);
        return /(auto|scroll)/.test(style.overflowY) && el.scrollHeight > el.clientHeight + 10;
    };
    let region = regionSelector ? document.querySelector(regionSelector) : null;
    if (!scrollable(region)) {
        region = Array.from(document.querySelectorAll('main, [class*="scroll"], [class*="Scroll"], div'))
            .filter(scrollable)
            .sort((a, b) => b.clientHeight - a.clientHeight)[0] || null;
    }
    if (region && region.clientHeight > window.innerHeight / 2) {
        region.scrollBy(0, region.clientHeight);
        return 'region';
    }
    window.scrollBy(0, window.innerHeight);
    return 'window';
}
"""

SCROLL_NUDGE_JS = """
([regionSelector, px]) => {
    const region = regionSelector ? document.querySelector(regionSelector) : null;
    (region || window).scrollBy(0, -px);
}
"""

COUNT_EXCEEDS_JS = """
([selectors, previous]) => {
    for (const sel of selectors) {
        const n = document.querySelectorAll(sel).length;
        if (n) return n > previous;
    }
    return false;
}
"""

PAGE_INFO_JS = """
(selector) => ({
    url: window.location.href,
    title: document.title,
    productCount: selector ? document.querySelectorAll(selector).length : 0,
})
"""
