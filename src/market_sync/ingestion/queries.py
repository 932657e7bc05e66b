"""
GraphQL documents for the Envio indexer of the XO market contract.

Numeric event fields are BigInt on the indexer side and arrive as strings.
"""

GET_MARKET_CREATED_EVENTS = """
    query GetMarketCreatedEvents($limit: Int, $offset: Int, $orderBy: [XOMarketContract_MarketCreated_order_by!]) {
      XOMarketContract_MarketCreated(
        limit: $limit
        offset: $offset
        order_by: $orderBy
      ) {
        id
        marketId
        creator
        startsAt
        expiresAt
        collateralToken
        outcomeCount
        initialCollateral
        creatorFeeBps
        metaDataURI
        alpha
      }
    }
"""

GET_MARKET_CREATED_EVENT_BY_ID = """
    query GetMarketCreatedEventById($marketId: numeric!) {
      XOMarketContract_MarketCreated(
        where: { marketId: { _eq: $marketId } }
      ) {
        id
        marketId
        creator
        startsAt
        expiresAt
        collateralToken
        outcomeCount
        initialCollateral
        creatorFeeBps
        metaDataURI
        alpha
      }
    }
"""

GET_MARKET_RESOLVED_EVENTS = """
    query GetMarketResolvedEvents($limit: Int, $offset: Int) {
      XOMarketContract_MarketResolved(
        limit: $limit
        offset: $offset
        order_by: { marketId: desc }
      ) {
        id
        marketId
        resolver
        winningTokenId
        redeemableAmount
      }
    }
"""

GET_TRADING_ACTIVITY = """
    query GetTradingActivity($marketId: numeric, $limit: Int) {
      bought: XOMarketContract_OutcomeTokensBought(
        where: { marketId: { _eq: $marketId } }
        limit: $limit
        order_by: { id: desc }
      ) {
        id
        marketId
        buyer
        outcomeIndex
        amount
        cost
      }
      sold: XOMarketContract_OutcomeTokensSold(
        where: { marketId: { _eq: $marketId } }
        limit: $limit
        order_by: { id: desc }
      ) {
        id
        marketId
        seller
        outcomeIndex
        amount
        received
      }
    }
"""
