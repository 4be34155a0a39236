"""
Default RDFa prefix table (RDFa 1.1 initial context plus the Open Graph family).

The table is read-only and shared; per-document overrides declared with the
``prefix`` attribute are layered on top of it with ``ChainMap`` scopes.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

OGP = "http://ogp.me/ns#"
OGP_ARTICLE = "http://ogp.me/ns/article#"
DCTERMS = "http://purl.org/dc/terms/"
SCHEMA = "http://schema.org/"
CC = "http://creativecommons.org/ns#"

DEFAULT_PREFIXES: Mapping[str, str] = MappingProxyType(
    {
        # Open Graph protocol
        "og": OGP,
        "fb": "http://ogp.me/ns/fb#",
        "article": OGP_ARTICLE,
        "book": "http://ogp.me/ns/book#",
        "books": "http://ogp.me/ns/books#",
        "business": "http://ogp.me/ns/business#",
        "fitness": "http://ogp.me/ns/fitness#",
        "game": "http://ogp.me/ns/game#",
        "music": "http://ogp.me/ns/music#",
        "place": "http://ogp.me/ns/place#",
        "product": "http://ogp.me/ns/product#",
        "profile": "http://ogp.me/ns/profile#",
        "restaurant": "http://ogp.me/ns/restaurant#",
        "video": "http://ogp.me/ns/video#",
        "website": "http://ogp.me/ns/website#",
        # RDFa 1.1 initial context
        "as": "https://www.w3.org/ns/activitystreams#",
        "cc": CC,
        "ctag": "http://commontag.org/ns#",
        "dc": DCTERMS,
        "dc11": "http://purl.org/dc/elements/1.1/",
        "dcat": "http://www.w3.org/ns/dcat#",
        "dcterms": DCTERMS,
        "foaf": "http://xmlns.com/foaf/0.1/",
        "gr": "http://purl.org/goodrelations/v1#",
        "grddl": "http://www.w3.org/2003/g/data-view#",
        "ical": "http://www.w3.org/2002/12/cal/icaltzd#",
        "ma": "http://www.w3.org/ns/ma-ont#",
        "owl": "http://www.w3.org/2002/07/owl#",
        "prov": "http://www.w3.org/ns/prov#",
        "qb": "http://purl.org/linked-data/cube#",
        "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
        "rdfa": "http://www.w3.org/ns/rdfa#",
        "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
        "rev": "http://purl.org/stuff/rev#",
        "rif": "http://www.w3.org/2007/rif#",
        "rr": "http://www.w3.org/ns/r2rml#",
        "schema": SCHEMA,
        "sd": "http://www.w3.org/ns/sparql-service-description#",
        "sioc": "http://rdfs.org/sioc/ns#",
        "skos": "http://www.w3.org/2004/02/skos/core#",
        "skosxl": "http://www.w3.org/2008/05/skos-xl#",
        "v": "http://rdf.data-vocabulary.org/#",
        "vcard": "http://www.w3.org/2006/vcard/ns#",
        "void": "http://rdfs.org/ns/void#",
        "wdr": "http://www.w3.org/2007/05/powder#",
        "wdrs": "http://www.w3.org/2007/05/powder-s#",
        "xhv": "http://www.w3.org/1999/xhtml/vocab#",
        "xml": "http://www.w3.org/XML/1998/namespace",
        "xsd": "http://www.w3.org/2001/XMLSchema#",
    }
)
