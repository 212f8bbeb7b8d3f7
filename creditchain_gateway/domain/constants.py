"""Enumerations and lookup tables shared by the generators and aggregators"""

from typing import Dict, List, Tuple

CATEGORIES: List[str] = [
    "groceries",
    "dining",
    "entertainment",
    "transportation",
    "utilities",
    "healthcare",
    "education",
    "shopping",
    "travel",
    "fuel",
    "insurance",
    "loan_payment",
    "salary",
    "investment",
    "business",
    "other",
]

CREDIT_CATEGORIES: List[str] = ["salary", "investment", "business"]

# Essential spend used for the needs-vs-wants ratio
NEEDS_CATEGORIES = frozenset({"groceries", "utilities", "healthcare", "loan_payment", "insurance"})

# Share of the daily budget a single debit in each category consumes
CATEGORY_MULTIPLIERS: Dict[str, float] = {
    "groceries": 0.15,
    "dining": 0.10,
    "entertainment": 0.05,
    "transportation": 0.08,
    "utilities": 0.12,
    "healthcare": 0.03,
    "education": 0.02,
    "shopping": 0.20,
    "travel": 0.10,
    "fuel": 0.05,
    "insurance": 0.03,
    "loan_payment": 0.15,
    "other": 0.05,
}
DEFAULT_CATEGORY_MULTIPLIER = 0.05

MERCHANTS: List[str] = [
    "BigBasket",
    "Swiggy",
    "Zomato",
    "BookMyShow",
    "Uber",
    "Ola",
    "Amazon",
    "Flipkart",
    "Myntra",
    "BPCL",
    "HPCL",
    "Reliance",
    "Apollo Pharmacy",
    "Medplus",
    "HDFC Bank",
    "ICICI Bank",
    "SBI",
    "Axis Bank",
    "Paytm",
    "PhonePe",
    "GPay",
    "IRCTC",
]

CITIES: List[str] = [
    "Mumbai",
    "Delhi",
    "Bangalore",
    "Chennai",
    "Kolkata",
    "Hyderabad",
    "Pune",
    "Ahmedabad",
    "Jaipur",
    "Lucknow",
]

STATES: List[str] = [
    "Maharashtra",
    "Delhi",
    "Karnataka",
    "Tamil Nadu",
    "West Bengal",
    "Telangana",
    "Gujarat",
    "Rajasthan",
    "Uttar Pradesh",
]

EMPLOYMENT_TYPES: List[str] = ["salaried", "self_employed", "business_owner", "freelancer"]
ACCOUNT_TYPES: List[str] = ["savings", "current", "salary"]
LOAN_TYPES: List[str] = ["personal", "home", "car", "education", "business", "gold"]
PAYMENT_METHODS: List[str] = ["card", "upi", "netbanking", "cash", "wallet"]

COMPANIES: List[str] = [
    "TCS",
    "Infosys",
    "Wipro",
    "HCL",
    "Tech Mahindra",
    "Cognizant",
    "Accenture",
    "IBM",
    "Microsoft",
    "Google",
    "Amazon",
    "Flipkart",
    "Reliance",
    "HDFC Bank",
    "ICICI Bank",
    "SBI",
    "Axis Bank",
]

DESIGNATIONS: List[str] = [
    "Software Engineer",
    "Senior Software Engineer",
    "Team Lead",
    "Project Manager",
    "Business Analyst",
    "Data Scientist",
    "Product Manager",
    "Sales Executive",
    "Marketing Manager",
]

# Synthetic transactions are jittered around this point (Bangalore)
GEO_CENTER: Tuple[float, float] = (12.9716, 77.5946)
GEO_RADIUS_KM = 50

TRANSACTION_WINDOW_DAYS = 180
MONTHS_IN_WINDOW = 6
MIN_DEBIT_AMOUNT = 10
CURRENCY = "INR"

CREDIT_SCORE_MIN = 300
CREDIT_SCORE_MAX = 850

# Breakdown weights used when the model omits them
DEFAULT_BREAKDOWN_WEIGHTS: Dict[str, int] = {
    "paymentHistory": 30,
    "creditUtilization": 25,
    "lengthOfHistory": 15,
    "newCredit": 10,
    "creditMix": 10,
    "alternativeFactors": 10,
}
