"""
Shopify Admin GraphQL product search, used to pick a catalogue product (and
its photos) as the pipeline input.
"""

import logging
from typing import Optional

import httpx

from . import config
from .errors import ConfigurationMissing
from .pipeline.models import ShopifyImage, ShopifyProduct, ShopifyVariant

logger = logging.getLogger(__name__)

SEARCH_TYPES = ("title", "sku")

_IMAGES_FRAGMENT = """
      images(first: 5) {
        edges { node { id url altText } }
      }"""

TITLE_QUERY = """
query searchProducts($query: String!) {
  products(first: 20, query: $query) {
    edges {
      node {
        id
        title
        handle
        productType
        vendor
        tags%s
        variants(first: 10) {
          edges { node { id title sku price } }
        }
      }
    }
  }
}
""" % _IMAGES_FRAGMENT

SKU_QUERY = """
query searchBySKU($query: String!) {
  productVariants(first: 20, query: $query) {
    edges {
      node {
        id
        title
        sku
        price
        product {
          id
          title
          handle
          productType
          vendor%s
        }
      }
    }
  }
}
""" % _IMAGES_FRAGMENT


class ShopifyError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _edges(connection: Optional[dict]) -> list[dict]:
    if not isinstance(connection, dict):
        return []
    return [edge.get("node") or {} for edge in connection.get("edges") or []]


def _images(product: dict) -> list[ShopifyImage]:
    return [
        ShopifyImage(id=img["id"], url=img["url"], altText=img.get("altText"))
        for img in _edges(product.get("images"))
        if img.get("id") and img.get("url")
    ]


def _variant(node: dict) -> ShopifyVariant:
    return ShopifyVariant(
        id=node["id"],
        title=node.get("title") or "",
        sku=node.get("sku"),
        price=node.get("price"),
    )


def parse_products(data: dict, search_type: str) -> list[ShopifyProduct]:
    """Normalize a GraphQL response body into ShopifyProduct models."""
    root = data.get("data") or {}
    products: list[ShopifyProduct] = []

    if search_type == "title":
        for node in _edges(root.get("products")):
            products.append(ShopifyProduct(
                id=node["id"],
                title=node.get("title") or "",
                handle=node.get("handle") or "",
                productType=node.get("productType"),
                vendor=node.get("vendor"),
                tags=node.get("tags") or [],
                images=_images(node),
                variants=[_variant(v) for v in _edges(node.get("variants"))],
            ))
    elif search_type == "sku":
        for node in _edges(root.get("productVariants")):
            product = node.get("product") or {}
            products.append(ShopifyProduct(
                id=product.get("id", ""),
                title=product.get("title") or "",
                handle=product.get("handle") or "",
                productType=product.get("productType"),
                vendor=product.get("vendor"),
                images=_images(product),
                variants=[_variant(node)],
            ))

    return products


class ShopifyClient:
    def __init__(
        self,
        store_url: str = config.SHOPIFY_STORE_URL,
        access_token: str = config.SHOPIFY_ACCESS_TOKEN,
        api_version: str = config.SHOPIFY_API_VERSION,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store_url = store_url.removeprefix("https://").rstrip("/")
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.store_url or not self.access_token:
            raise ConfigurationMissing(
                "SHOPIFY_STORE_URL",
                "SHOPIFY_STORE_URL and SHOPIFY_ACCESS_TOKEN must be set",
            )

    async def search(self, query: str, search_type: str = "title") -> list[ShopifyProduct]:
        self.ensure_configured()
        if search_type not in SEARCH_TYPES:
            raise ValueError(f"searchType must be one of {SEARCH_TYPES}")

        graphql = TITLE_QUERY if search_type == "title" else SKU_QUERY
        url = f"https://{self.store_url}/admin/api/{self.api_version}/graphql.json"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    url,
                    headers={"X-Shopify-Access-Token": self.access_token},
                    json={"query": graphql, "variables": {"query": query}},
                )
        except httpx.HTTPError as e:
            raise ShopifyError(f"Shopify request failed: {e}")

        if resp.status_code != 200:
            raise ShopifyError(f"Shopify API error: {resp.status_code}", status_code=resp.status_code)

        products = parse_products(resp.json(), search_type)
        logger.info(f"Shopify {search_type} search '{query}': {len(products)} product(s)")
        return products
