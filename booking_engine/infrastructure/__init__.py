"""Capa de Infraestructura - adaptadores de persistencia, gateways y workers."""
