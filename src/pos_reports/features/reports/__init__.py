"""Reporting API endpoints for the point-of-sale system

This module provides read-only sales reports: a sales summary, a sales
trend bucketed by calendar day/week/month/year, top selling products,
sales by payment method and by customer, and gross profit by product,
category or order.

Every endpoint takes an inclusive startDate/endDate range and answers with
the same {success, data} envelope. Handlers delegate to service functions,
which validate the parameters and run the aggregation queries through the
ConnectionProvider."""
