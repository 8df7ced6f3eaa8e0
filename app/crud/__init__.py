# Storage access for billing records
