from prometheus_client import Counter

members_added_total = Counter(
    "bona_members_added_total",
    "Number of members added directly to a project"
)

role_changes_total = Counter(
    "bona_role_changes_total",
    "Number of committed member role changes",
    ["old_role", "new_role"],
)

members_removed_total = Counter(
    "bona_members_removed_total",
    "Number of members removed from a project"
)

admissions_opened_total = Counter(
    "bona_admissions_opened_total",
    "Number of invitation links created by opening admissions"
)

admissions_closed_total = Counter(
    "bona_admissions_closed_total",
    "Number of close-admissions requests that deactivated a link"
)

invitations_accepted_total = Counter(
    "bona_invitations_accepted_total",
    "Number of accepted invitations",
    ["outcome"],  # joined | existing_member
)

invitation_rejections_total = Counter(
    "bona_invitation_rejections_total",
    "Number of invitation validations or acceptances that were refused",
    ["reason"],
)
