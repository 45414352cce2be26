"""Reports Service: reportes financieros sobre los servicios de cuentas, clientes y transacciones."""
