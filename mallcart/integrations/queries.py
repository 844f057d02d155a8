"""GraphQL documents for the marketplace directory and the shop Storefront APIs."""

# ============== DIRECTORY ==============

SHOP_QUERY = """
query Shop($id: Int!) {
  shop(id: $id) {
    id
    domain
    name
    storefrontAccessToken
  }
}
"""

SHOPS_BY_DOMAIN_QUERY = """
query Shops($domains: [String]) {
  shops(domains: $domains) {
    id
    domain
    name
    storefrontAccessToken
  }
}
"""

SHOPS_SEARCH_QUERY = """
query Shops($country: String, $name: String, $reverse: Boolean) {
  shops(country: $country, nameIsLike: $name, reverse: $reverse) {
    id
    domain
    name
    storefrontAccessToken
  }
}
"""

SHOP_COUNTRIES_QUERY = """
query ShopCountries {
  shopCountries
}
"""

# ============== STOREFRONT: CART ==============
# Every operation using the fragment declares $linesFirst.

CORE_CART_FIELDS = """
fragment CoreCartFields on Cart {
  id
  checkoutUrl
  estimatedCost {
    subtotalAmount {
      amount
      currencyCode
    }
    totalAmount {
      amount
      currencyCode
    }
  }
  lines(first: $linesFirst) {
    edges {
      node {
        id
        quantity
        merchandise {
          ... on ProductVariant {
            id
            image {
              originalSrc
              altText
            }
            priceV2 {
              amount
              currencyCode
            }
            product {
              title
            }
            selectedOptions {
              name
              value
            }
          }
        }
      }
    }
  }
}
"""

USER_ERRORS_FIELDS = """
userErrors {
  code
  field
  message
}
"""

CART_CREATE_MUTATION = (
    CORE_CART_FIELDS
    + """
mutation cartCreate($input: CartInput, $linesFirst: Int!) {
  cartCreate(input: $input) {
    cart {
      ...CoreCartFields
    }
"""
    + USER_ERRORS_FIELDS
    + """
  }
}
"""
)

CART_LINES_ADD_MUTATION = (
    CORE_CART_FIELDS
    + """
mutation cartLinesAdd($lines: [CartLineInput!]!, $cartId: ID!, $linesFirst: Int!) {
  cartLinesAdd(lines: $lines, cartId: $cartId) {
    cart {
      ...CoreCartFields
    }
"""
    + USER_ERRORS_FIELDS
    + """
  }
}
"""
)

CART_LINES_REMOVE_MUTATION = (
    CORE_CART_FIELDS
    + """
mutation cartLinesRemove($cartId: ID!, $lineIds: [ID!]!, $linesFirst: Int!) {
  cartLinesRemove(cartId: $cartId, lineIds: $lineIds) {
    cart {
      ...CoreCartFields
    }
"""
    + USER_ERRORS_FIELDS
    + """
  }
}
"""
)

CART_LINES_UPDATE_MUTATION = (
    CORE_CART_FIELDS
    + """
mutation cartLinesUpdate($cartId: ID!, $lines: [CartLineUpdateInput!]!, $linesFirst: Int!) {
  cartLinesUpdate(cartId: $cartId, lines: $lines) {
    cart {
      ...CoreCartFields
    }
"""
    + USER_ERRORS_FIELDS
    + """
  }
}
"""
)

CART_QUERY = (
    CORE_CART_FIELDS
    + """
query getCart($id: ID!, $linesFirst: Int!) {
  cart(id: $id) {
    ...CoreCartFields
  }
}
"""
)

# ============== STOREFRONT: CATALOG ==============

PRODUCT_QUERY = """
query getProductPageData($productHandle: String!, $variantsFirst: Int!) {
  product(handle: $productHandle) {
    id
    handle
    title
    description
    options(first: 100) {
      id
      name
      values
    }
    variants(first: $variantsFirst) {
      edges {
        node {
          id
          title
          priceV2 {
            amount
            currencyCode
          }
          image {
            originalSrc
            altText
          }
          availableForSale
          selectedOptions {
            name
            value
          }
        }
      }
    }
    images(first: 10) {
      edges {
        node {
          originalSrc
          altText
        }
      }
    }
  }
}
"""
