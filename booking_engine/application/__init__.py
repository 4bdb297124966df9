"""Capa de Aplicación - puertos, servicios y casos de uso."""
